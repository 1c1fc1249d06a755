"""
Tests for image normalization stages.
"""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from barscan.imaging import (
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
    otsu_threshold,
    upscale_nearest,
)
from barscan.imaging.normalize import upscale_factor


def white(height: int, width: int) -> np.ndarray:
    return np.full((height, width, 4), 255, dtype=np.uint8)


def barcode_image() -> np.ndarray:
    """White 40x60 image with three black bars in rows 10-29."""
    buf = white(40, 60)
    for start, stop in [(10, 13), (20, 22), (30, 36)]:
        buf[10:30, start:stop, :3] = 0
    return buf


class TestLoadPixelBuffer:
    """Tests for loading image sources."""

    def test_load_png_bytes(self):
        stream = BytesIO()
        Image.new("RGB", (7, 5), (10, 20, 30)).save(stream, format="PNG")

        buf = load_pixel_buffer(stream.getvalue())

        assert buf.shape == (5, 7, 4)
        assert buf.dtype == np.uint8
        assert tuple(buf[0, 0]) == (10, 20, 30, 255)

    def test_load_pil_image(self):
        buf = load_pixel_buffer(Image.new("L", (3, 2), 128))
        assert buf.shape == (2, 3, 4)
        assert tuple(buf[1, 2]) == (128, 128, 128, 255)

    def test_load_gray_array(self):
        buf = load_pixel_buffer(np.zeros((4, 6), dtype=np.uint8))
        assert buf.shape == (4, 6, 4)
        assert (buf[:, :, 3] == 255).all()

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "code.png"
        Image.new("RGBA", (4, 3), (0, 0, 0, 0)).save(path)
        assert load_pixel_buffer(path).shape == (3, 4, 4)

    def test_undecodable_bytes(self):
        with pytest.raises(ImageDecodeError):
            load_pixel_buffer(b"definitely not an image")

    def test_empty_array(self):
        with pytest.raises(ImageDecodeError):
            load_pixel_buffer(np.zeros((0, 5, 4), dtype=np.uint8))

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            load_pixel_buffer(12345)


class TestAutoCrop:
    """Tests for ink bounding box cropping."""

    def test_single_pixel(self):
        buf = white(8, 10)
        buf[3, 5] = (0, 0, 0, 255)

        assert find_ink_bbox(buf) == (5, 3, 5, 3)
        cropped = auto_crop(buf)
        assert cropped.shape == (1, 1, 4)
        assert tuple(cropped[0, 0]) == (0, 0, 0, 255)

    def test_all_white_unchanged(self):
        buf = white(8, 10)
        cropped = auto_crop(buf)
        assert cropped.shape == buf.shape
        assert np.array_equal(cropped, buf)
        assert cropped is not buf

    def test_transparent_pixels_are_not_ink(self):
        buf = white(8, 10)
        buf[2, 2] = (0, 0, 0, 5)
        assert find_ink_bbox(buf) is None

    def test_near_white_is_not_ink(self):
        buf = white(8, 10)
        buf[2, 2] = (252, 252, 252, 255)
        assert find_ink_bbox(buf) is None

    def test_crops_bars(self):
        cropped = auto_crop(barcode_image())
        assert cropped.shape == (20, 26, 4)

    def test_idempotent_after_first_crop(self):
        once = auto_crop(barcode_image())
        assert np.array_equal(auto_crop(once), once)


class TestUpscale:
    """Tests for nearest-neighbor upscaling."""

    def test_scale_factor(self):
        assert upscale_factor(10, 200) == 20
        assert upscale_factor(150, 200) == 2
        assert upscale_factor(500, 200) == 2

    def test_dimensions(self):
        out = upscale_nearest(white(10, 7), min_height=200)
        assert out.shape == (200, 140, 4)

    def test_no_smoothing(self):
        buf = np.zeros((2, 2, 4), dtype=np.uint8)
        buf[0, 0] = (255, 0, 0, 255)
        buf[0, 1] = (0, 255, 0, 255)
        buf[1, 0] = (0, 0, 255, 255)
        buf[1, 1] = (255, 255, 255, 255)

        out = upscale_nearest(buf, min_height=4)

        assert out.shape == (4, 4, 4)
        for y in range(4):
            for x in range(4):
                assert tuple(out[y, x]) == tuple(buf[y // 2, x // 2])


class TestOtsu:
    """Tests for Otsu thresholding."""

    def test_two_level_histogram(self):
        hist = np.zeros(256, dtype=np.int64)
        hist[50] = 1000
        hist[200] = 1010
        threshold = otsu_threshold(hist)
        assert 50 <= threshold < 200

    def test_lowest_maximum_wins(self):
        hist = np.zeros(256, dtype=np.int64)
        hist[50] = 100
        hist[200] = 100
        assert otsu_threshold(hist) == 50

    def test_single_level_defaults(self):
        hist = np.zeros(256, dtype=np.int64)
        hist[80] = 500
        assert otsu_threshold(hist) == 127
        assert otsu_threshold(np.zeros(256)) == 127

    def test_binarize(self):
        buf = white(4, 8)
        buf[:, :4, :3] = 50
        buf[:, 4:, :3] = 200
        buf[:, :, 3] = 128

        out = binarize_otsu(buf)

        assert (out[:, :4, :3] == 0).all()
        assert (out[:, 4:, :3] == 255).all()
        assert (out[:, :, 3] == 255).all()
        assert buf[0, 0, 0] == 50


class TestMedianVertical:
    """Tests for the vertical 1x3 median filter."""

    def test_removes_isolated_speck(self):
        buf = white(5, 3)
        buf[2, 1, :3] = 0
        out = median_vertical(buf)
        assert (out == 255).all()

    def test_keeps_vertical_bar(self):
        buf = white(6, 5)
        buf[:, 2, :3] = 0
        assert np.array_equal(median_vertical(buf), buf)

    def test_border_rows_unchanged(self):
        buf = white(5, 3)
        buf[0, 0, :3] = 0
        buf[4, 2, :3] = 0
        out = median_vertical(buf)
        assert np.array_equal(out[0], buf[0])
        assert np.array_equal(out[4], buf[4])

    def test_short_image(self):
        buf = white(2, 3)
        buf[0, 0, :3] = 0
        assert np.array_equal(median_vertical(buf), buf)


class TestQuietZone:
    """Tests for quiet zone padding."""

    @pytest.mark.parametrize("pad", [24, 32])
    def test_padding(self, pad):
        buf = np.zeros((3, 4, 4), dtype=np.uint8)
        buf[:, :, 3] = 255

        out = add_quiet_zone(buf, pad)

        assert out.shape == (3 + 2 * pad, 4 + 2 * pad, 4)
        border = np.ones(out.shape[:2], dtype=bool)
        border[pad:-pad, pad:-pad] = False
        assert (out[border] == 255).all()
        assert np.array_equal(out[pad:-pad, pad:-pad], buf)


class TestImageNormalizer:
    """Tests for the full normalization pipeline."""

    def test_pipeline_order(self):
        assert PIPELINE == (
            Stage.CROP,
            Stage.UPSCALE,
            Stage.BINARIZE,
            Stage.DENOISE,
            Stage.QUIET_ZONE,
        )

    def test_full_pipeline(self):
        normalizer = ImageNormalizer(NormalizeConfig())
        out = normalizer.normalize(barcode_image())

        # 26x20 crop, scale 10, 32px quiet zone
        assert out.shape == (264, 324, 4)
        assert set(np.unique(out[:, :, :3])) <= {0, 255}
        assert (out[:, :, 3] == 255).all()

    def test_deterministic(self):
        normalizer = ImageNormalizer(NormalizeConfig())
        source = barcode_image()
        assert np.array_equal(normalizer.normalize(source), normalizer.normalize(source))

    def test_input_not_modified(self):
        source = barcode_image()
        ImageNormalizer(NormalizeConfig()).normalize(source)
        assert np.array_equal(source, barcode_image())

    def test_stage_subset_runs_in_pipeline_order(self):
        normalizer = ImageNormalizer(NormalizeConfig(padding=24))
        source = barcode_image()

        out = normalizer.normalize(source, stages=[Stage.QUIET_ZONE, Stage.CROP])

        assert np.array_equal(out, add_quiet_zone(auto_crop(source), 24))

    def test_stage_names_accepted(self):
        normalizer = ImageNormalizer(NormalizeConfig())
        out = normalizer.normalize(barcode_image(), stages=["crop"])
        assert out.shape == (20, 26, 4)

    def test_blank_image_keeps_size_through_crop(self):
        normalizer = ImageNormalizer(NormalizeConfig(min_height=10, padding=2))
        out = normalizer.normalize(white(5, 6))
        assert out.shape == (5 * 2 + 4, 6 * 2 + 4, 4)

    def test_undecodable_source(self):
        with pytest.raises(ImageDecodeError):
            ImageNormalizer(NormalizeConfig()).normalize(b"\x00\x01\x02")
