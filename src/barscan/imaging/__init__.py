"""
Image normalization for barcode recognition.
"""

from barscan.imaging.normalize import (
    PIPELINE,
    ImageDecodeError,
    ImageNormalizer,
    NormalizeConfig,
    Stage,
    add_quiet_zone,
    auto_crop,
    binarize_otsu,
    find_ink_bbox,
    load_pixel_buffer,
    median_vertical,
    normalize_image,
    otsu_threshold,
    to_pil_image,
    upscale_nearest,
)

__all__ = [
    "PIPELINE",
    "ImageDecodeError",
    "ImageNormalizer",
    "NormalizeConfig",
    "Stage",
    "add_quiet_zone",
    "auto_crop",
    "binarize_otsu",
    "find_ink_bbox",
    "load_pixel_buffer",
    "median_vertical",
    "normalize_image",
    "otsu_threshold",
    "to_pil_image",
    "upscale_nearest",
]
