"""
Image normalization for barcode recognition.

Prepares a photographed or uploaded barcode for the recognizer:
- Loads the image into an RGBA pixel buffer
- Crops to the inked area
- Upscales with nearest-neighbor sampling so bars stay sharp
- Binarizes with an Otsu threshold
- Removes salt-and-pepper noise with a vertical 1x3 median
- Adds a white quiet zone around the code

Pixel buffers are numpy arrays of shape (height, width, 4), dtype uint8.
Every stage returns a new array and leaves its input untouched.
"""

import math
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

# Rec. 709 luma weights
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])

WHITE = (255, 255, 255, 255)


class ImageDecodeError(ValueError):
    """Raised when a source image cannot be turned into a pixel buffer."""


class Stage(str, Enum):
    """Normalization stages in the order they are applied."""

    CROP = "crop"
    UPSCALE = "upscale"
    BINARIZE = "binarize"
    DENOISE = "denoise"
    QUIET_ZONE = "quiet_zone"


PIPELINE: tuple[Stage, ...] = tuple(Stage)


@dataclass
class NormalizeConfig:
    """Configuration for image normalization."""

    min_height: int = 200
    padding: int = 32
    ink_luma_threshold: float = 250
    min_alpha: int = 10

    @classmethod
    def from_settings(cls) -> "NormalizeConfig":
        """Build a config from application settings."""
        from barscan.config import get_settings

        settings = get_settings()
        return cls(
            min_height=settings.normalize_min_height,
            padding=settings.normalize_padding,
            ink_luma_threshold=settings.normalize_ink_luma_threshold,
            min_alpha=settings.normalize_min_alpha,
        )


def _to_rgba(array: np.ndarray) -> np.ndarray:
    """Convert a gray, RGB or RGBA array to an RGBA uint8 buffer."""
    if array.ndim == 3 and array.shape[2] == 1:
        array = array[:, :, 0]

    if array.size == 0:
        raise ImageDecodeError("Image has no pixels")

    if array.dtype != np.uint8:
        raise ImageDecodeError(f"Unsupported pixel dtype: {array.dtype}")

    array = np.ascontiguousarray(array)
    if array.ndim == 2:
        return cv2.cvtColor(array, cv2.COLOR_GRAY2RGBA)
    if array.ndim == 3 and array.shape[2] == 3:
        return cv2.cvtColor(array, cv2.COLOR_RGB2RGBA)
    if array.ndim == 3 and array.shape[2] == 4:
        return array.copy()

    raise ImageDecodeError(f"Unsupported pixel buffer shape: {array.shape}")


def load_pixel_buffer(
    source: bytes | BytesIO | str | Path | np.ndarray | Image.Image,
) -> np.ndarray:
    """
    Decode an image source into an RGBA pixel buffer at native resolution.

    Args:
        source: Encoded bytes, BytesIO, file path, PIL Image or numpy array

    Returns:
        RGBA buffer of shape (height, width, 4)

    Raises:
        ImageDecodeError: If the source cannot be decoded or is empty
        TypeError: If the source type is not supported
    """
    if isinstance(source, np.ndarray):
        buf = _to_rgba(source)
    else:
        if isinstance(source, Image.Image):
            image = source
        elif isinstance(source, bytes):
            image = _open_image(BytesIO(source))
        elif isinstance(source, (BytesIO, str, Path)):
            image = _open_image(source)
        else:
            raise TypeError(f"Unsupported image type: {type(source)}")
        buf = np.array(image.convert("RGBA"), dtype=np.uint8)

    if buf.shape[0] == 0 or buf.shape[1] == 0:
        raise ImageDecodeError("Image has no pixels")

    return buf


def _open_image(source) -> Image.Image:
    try:
        image = Image.open(source)
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Failed to decode image: {e}") from e
    return image


def luma(buf: np.ndarray) -> np.ndarray:
    """Per-pixel luma of an RGBA buffer as float64."""
    return buf[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS


def find_ink_bbox(
    buf: np.ndarray,
    min_alpha: int = 10,
    ink_luma_threshold: float = 250,
) -> tuple[int, int, int, int] | None:
    """
    Find the tight bounding box of all ink pixels.

    A pixel is ink when it is not transparent and not near-white.

    Returns:
        (min_x, min_y, max_x, max_y), or None if there is no ink
    """
    ink = (buf[:, :, 3] >= min_alpha) & (luma(buf) < ink_luma_threshold)
    if not ink.any():
        return None

    ys = np.flatnonzero(ink.any(axis=1))
    xs = np.flatnonzero(ink.any(axis=0))
    return int(xs[0]), int(ys[0]), int(xs[-1]), int(ys[-1])


def auto_crop(
    buf: np.ndarray,
    min_alpha: int = 10,
    ink_luma_threshold: float = 250,
) -> np.ndarray:
    """Crop to the inked area; a buffer without ink is returned as is."""
    bbox = find_ink_bbox(buf, min_alpha, ink_luma_threshold)
    if bbox is None:
        return buf.copy()

    min_x, min_y, max_x, max_y = bbox
    return buf[min_y : max_y + 1, min_x : max_x + 1].copy()


def upscale_factor(height: int, min_height: int = 200) -> int:
    """Integer scale factor that makes the image at least min_height tall."""
    return max(2, math.ceil(min_height / height))


def upscale_nearest(buf: np.ndarray, min_height: int = 200) -> np.ndarray:
    """Upscale by an integer factor without smoothing so bar edges stay hard."""
    height, width = buf.shape[:2]
    scale = upscale_factor(height, min_height)
    return cv2.resize(
        buf,
        (width * scale, height * scale),
        interpolation=cv2.INTER_NEAREST_EXACT,
    )


def grayscale(buf: np.ndarray) -> np.ndarray:
    """Luma rounded half-up to uint8."""
    return np.floor(luma(buf) + 0.5).clip(0, 255).astype(np.uint8)


def otsu_threshold(hist: np.ndarray) -> int:
    """
    Compute the Otsu threshold of a 256-bin histogram.

    Maximizes the between-class variance wB * wF * (mB - mF)^2. The lowest
    maximizing threshold wins; 127 is returned when no split separates two
    non-empty classes.
    """
    hist = np.asarray(hist, dtype=np.float64)
    levels = np.arange(hist.size, dtype=np.float64)

    total = hist.sum()
    weight_bg = np.cumsum(hist)
    weight_fg = total - weight_bg
    sum_bg = np.cumsum(levels * hist)
    sum_all = sum_bg[-1] if hist.size else 0.0

    valid = (weight_bg > 0) & (weight_fg > 0)
    if not valid.any():
        return 127

    with np.errstate(divide="ignore", invalid="ignore"):
        mean_bg = sum_bg / weight_bg
        mean_fg = (sum_all - sum_bg) / weight_fg
        between = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2

    between = np.where(valid, between, 0.0)
    if between.max() <= 0:
        return 127
    return int(np.argmax(between))


def binarize_otsu(buf: np.ndarray) -> np.ndarray:
    """Force every pixel to opaque black or white using the Otsu threshold."""
    gray = grayscale(buf)
    hist = np.bincount(gray.ravel(), minlength=256)
    threshold = otsu_threshold(hist)

    value = np.where(gray <= threshold, 0, 255).astype(np.uint8)
    out = np.empty_like(buf)
    out[:, :, :3] = value[:, :, np.newaxis]
    out[:, :, 3] = 255
    return out


def median_vertical(buf: np.ndarray) -> np.ndarray:
    """
    Vertical 1x3 median filter.

    Interior rows take the per-channel median of the pixel and its upper
    and lower neighbors. The first and last rows are left unchanged.
    Vertical bars are preserved while isolated specks are removed.
    """
    out = buf.copy()
    if buf.shape[0] < 3:
        return out

    stacked = np.stack([buf[:-2], buf[1:-1], buf[2:]])
    out[1:-1] = np.sort(stacked, axis=0)[1]
    return out


def add_quiet_zone(buf: np.ndarray, pad: int = 32) -> np.ndarray:
    """Surround the buffer with a white, opaque margin of pad pixels."""
    return cv2.copyMakeBorder(
        buf,
        pad,
        pad,
        pad,
        pad,
        cv2.BORDER_CONSTANT,
        value=WHITE,
    )


class ImageNormalizer:
    """
    Runs the normalization stages over an image.

    Stages always run in pipeline order. Callers can pass a subset, e.g.
    to retry recognition without the denoise step.
    """

    def __init__(self, config: NormalizeConfig | None = None):
        self.config = config or NormalizeConfig.from_settings()

    def apply(self, buf: np.ndarray, stage: Stage) -> np.ndarray:
        """Apply a single stage to a pixel buffer."""
        config = self.config
        if stage == Stage.CROP:
            return auto_crop(buf, config.min_alpha, config.ink_luma_threshold)
        if stage == Stage.UPSCALE:
            return upscale_nearest(buf, config.min_height)
        if stage == Stage.BINARIZE:
            return binarize_otsu(buf)
        if stage == Stage.DENOISE:
            return median_vertical(buf)
        if stage == Stage.QUIET_ZONE:
            return add_quiet_zone(buf, config.padding)
        raise ValueError(f"Unknown stage: {stage}")

    def normalize(
        self,
        source: bytes | BytesIO | str | Path | np.ndarray | Image.Image,
        stages: set[Stage] | list[Stage] | tuple[Stage, ...] | None = None,
    ) -> np.ndarray:
        """
        Load an image and run the selected stages in pipeline order.

        Args:
            source: Image source accepted by load_pixel_buffer
            stages: Stages to run (default: all)

        Returns:
            Normalized RGBA buffer

        Raises:
            ImageDecodeError: If the source cannot be decoded
        """
        return self.run(load_pixel_buffer(source), stages)

    def run(
        self,
        buf: np.ndarray,
        stages: set[Stage] | list[Stage] | tuple[Stage, ...] | None = None,
    ) -> np.ndarray:
        """Run the selected stages over an already loaded pixel buffer."""
        selected = set(PIPELINE if stages is None else (Stage(s) for s in stages))

        for stage in PIPELINE:
            if stage in selected:
                buf = self.apply(buf, stage)
        return buf


def normalize_image(
    source: bytes | BytesIO | str | Path | np.ndarray | Image.Image,
    stages: set[Stage] | list[Stage] | tuple[Stage, ...] | None = None,
    config: NormalizeConfig | None = None,
) -> np.ndarray:
    """
    Convenience function to normalize an image for barcode recognition.

    Args:
        source: Image data
        stages: Stages to run (default: all)
        config: Normalization parameters (default: from settings)

    Returns:
        Normalized RGBA buffer
    """
    normalizer = ImageNormalizer(config)
    return normalizer.normalize(source, stages)


def to_pil_image(buf: np.ndarray) -> Image.Image:
    """Wrap an RGBA pixel buffer as a PIL image."""
    return Image.fromarray(np.ascontiguousarray(buf))
