"""End-to-end tests for the one-shot operations, using real Pillow encodes."""

import io
import math

import pytest
from PIL import Image

from shrinklab import operations
from shrinklab.blob import ImageBlob
from shrinklab.errors import (
    IllegalArgumentError,
    UnsupportedColorLayoutError,
    UnsupportedFormatError,
)
from shrinklab.formats import ImageFormat

from conftest import animated_gif, noise_image


class TestSetLongestSide:
    """Tests for operations.set_longest_side."""

    def test_scales_preserving_aspect_ratio(self, jpeg_blob):
        result = operations.set_longest_side(jpeg_blob, 32)

        assert result.format is ImageFormat.JPEG
        assert operations.image_dimensions(result) == (32, 24)

    def test_noop_returns_same_instance(self, jpeg_blob):
        assert operations.set_longest_side(jpeg_blob, 64) is jpeg_blob
        assert operations.set_longest_side(jpeg_blob, 1000) is jpeg_blob

    def test_rejects_non_positive(self, jpeg_blob):
        with pytest.raises(IllegalArgumentError):
            operations.set_longest_side(jpeg_blob, 0)

    def test_rejects_nan(self, jpeg_blob):
        with pytest.raises(IllegalArgumentError):
            operations.set_longest_side(jpeg_blob, math.nan)

    def test_resize_bakes_in_orientation(self, rotated_jpeg_blob):
        result = operations.set_longest_side(rotated_jpeg_blob, 32)

        assert operations.image_dimensions(result) == (24, 32)
        assert operations.orientation(result) in (None, 1)

    def test_rejects_unknown_format(self):
        with pytest.raises(UnsupportedFormatError):
            operations.set_longest_side(b"plain text, not pixels", 10)

    def test_animated_gif_keeps_frame_timing(self):
        gif = animated_gif([70, 120, 200], size=(40, 20))
        result = operations.set_longest_side(gif, 20)

        assert operations.image_dimensions(result) == (20, 10)
        assert operations.frame_count(result) == 3
        assert operations.frame_durations(result) == [70.0, 120.0, 200.0]


class TestSetFrameSampling:
    """Tests for operations.set_frame_sampling."""

    def test_merges_durations(self, gif_blob):
        result = operations.set_frame_sampling(gif_blob, 2)

        assert operations.frame_count(result) == 3
        assert operations.frame_durations(result) == [100.0, 100.0, 50.0]

    def test_unsupported_for_jpeg(self, jpeg_blob):
        with pytest.raises(UnsupportedFormatError):
            operations.set_frame_sampling(jpeg_blob, 2)

    def test_rejects_zero(self, gif_blob):
        with pytest.raises(IllegalArgumentError):
            operations.set_frame_sampling(gif_blob, 0)

    def test_identical_sampled_frames_collapse_in_gif_output(self):
        """Pillow's GIF writer merges identical neighbours and sums their delays."""
        colors = ["red", "blue", "red", "blue", "red"]
        frames = [Image.new("RGB", (8, 8), color) for color in colors]
        buffer = io.BytesIO()
        frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=50)
        gif = ImageBlob(buffer.getvalue())

        result = operations.set_frame_sampling(gif, 2)

        assert operations.frame_count(result) == 1
        assert operations.frame_durations(result) == [250.0]


class TestSetQuality:
    """Tests for operations.set_quality."""

    def test_lower_quality_is_smaller(self, jpeg_blob):
        result = operations.set_quality(jpeg_blob, 0.1)

        assert result.format is ImageFormat.JPEG
        assert len(result) < len(jpeg_blob)

    def test_png_has_no_quality(self, png_blob):
        with pytest.raises(UnsupportedFormatError):
            operations.set_quality(png_blob, 0.5)

    def test_out_of_range(self, jpeg_blob):
        with pytest.raises(IllegalArgumentError):
            operations.set_quality(jpeg_blob, 1.5)


class TestSetDpi:
    """Tests for operations.set_dpi."""

    def test_rewrites_jpeg_dpi(self, jpeg_blob):
        result = operations.set_dpi(jpeg_blob, (72, 72))

        assert operations.image_dpi(result) == pytest.approx((72, 72))
        assert operations.image_dimensions(result) == (64, 48)

    def test_equal_dpi_returns_same_instance(self, png_blob):
        assert operations.set_dpi(png_blob, (96, 96)) is png_blob

    def test_no_metadata_returns_same_instance(self, plain_png_blob):
        assert operations.set_dpi(plain_png_blob, (300, 300)) is plain_png_blob

    def test_gif_has_no_dpi(self, gif_blob):
        with pytest.raises(UnsupportedFormatError):
            operations.set_dpi(gif_blob, (72, 72))

    def test_rejects_non_positive(self, jpeg_blob):
        with pytest.raises(IllegalArgumentError):
            operations.set_dpi(jpeg_blob, (0, 72))


class TestChangeContainerFormat:
    """Tests for operations.change_container_format."""

    def test_png_to_jpeg(self, png_blob):
        result = operations.change_container_format(png_blob, ImageFormat.JPEG)

        assert result.format is ImageFormat.JPEG
        assert operations.image_dimensions(result) == (40, 30)
        assert operations.has_alpha(result) is False

    def test_jpeg_to_png(self, jpeg_blob):
        result = operations.change_container_format(jpeg_blob, ImageFormat.PNG)
        assert result.format is ImageFormat.PNG

    @pytest.mark.parametrize("target", [ImageFormat.DNG, ImageFormat.UNKNOWN])
    def test_unwritable_targets(self, jpeg_blob, target):
        with pytest.raises(UnsupportedFormatError):
            operations.change_container_format(jpeg_blob, target)


class TestChangeColorLayout:
    """Tests for operations.change_color_layout."""

    def test_gif_rejected(self, gif_blob):
        with pytest.raises(UnsupportedFormatError):
            operations.change_color_layout(gif_blob, "rgb565")

    def test_unknown_layout_name(self, jpeg_blob):
        with pytest.raises(UnsupportedColorLayoutError):
            operations.change_color_layout(jpeg_blob, "bogus")

    def test_alpha8_writes_grayscale_png(self, png_blob):
        result = operations.change_color_layout(png_blob, "alpha8")

        assert result.format is ImageFormat.PNG
        assert operations.has_alpha(result) is False
        assert operations.image_dimensions(result) == (40, 30)

    def test_rgb565_drops_alpha(self, png_blob):
        result = operations.change_color_layout(png_blob, "rgb565")
        assert operations.has_alpha(result) is False

    def test_rgba_f16_keeps_alpha(self, png_blob):
        result = operations.change_color_layout(png_blob, "rgbaf16")
        assert operations.has_alpha(result) is True


class TestCompressToByteBudget:
    """Tests for operations.compress_to_byte_budget against Pillow."""

    def test_jpeg_fits_budget(self, jpeg_blob):
        budget = len(jpeg_blob) // 2
        result = operations.compress_to_byte_budget(jpeg_blob, budget)

        assert result.format is ImageFormat.JPEG
        assert len(result) <= budget

    def test_png_fits_budget(self, png_blob):
        budget = len(png_blob) // 2
        result = operations.compress_to_byte_budget(png_blob, budget)

        assert result.format is ImageFormat.PNG
        assert len(result) <= budget

    @pytest.mark.slow
    def test_animated_gif_fits_budget(self):
        """Twelve noise frames sample down to four (stride 3)."""
        frames = [noise_image(64, 48, seed=seed) for seed in range(12)]
        buffer = io.BytesIO()
        frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=40)
        gif = ImageBlob(buffer.getvalue())
        budget = len(gif) // 2
        result = operations.compress_to_byte_budget(gif, budget)

        assert result.format is ImageFormat.GIF
        assert len(result) <= budget

    def test_already_fits(self, jpeg_blob):
        assert operations.compress_to_byte_budget(jpeg_blob, len(jpeg_blob)) is jpeg_blob

    def test_rejects_zero_budget(self, jpeg_blob):
        with pytest.raises(IllegalArgumentError):
            operations.compress_to_byte_budget(jpeg_blob, 0)

    def test_rejects_nan_budget(self, jpeg_blob):
        with pytest.raises(IllegalArgumentError):
            operations.compress_to_byte_budget(jpeg_blob, math.nan)


class TestQueries:
    """Tests for the inspection passthroughs."""

    def test_image_format(self, jpeg_blob, gif_blob):
        assert operations.image_format(jpeg_blob) is ImageFormat.JPEG
        assert operations.image_format(gif_blob.data) is ImageFormat.GIF

    def test_capability_queries(self):
        assert operations.is_write_supported(ImageFormat.PNG) is True
        assert operations.is_write_supported(ImageFormat.DNG) is False
        assert operations.is_dpi_supported(ImageFormat.JPEG) is True
        assert operations.is_dpi_supported(ImageFormat.GIF) is False

    def test_orientation(self, jpeg_blob, rotated_jpeg_blob):
        assert operations.orientation(jpeg_blob) is None
        assert operations.orientation(rotated_jpeg_blob) == 6

    def test_plain_reencode_keeps_orientation(self, rotated_jpeg_blob):
        result = operations.set_quality(rotated_jpeg_blob, 0.3)

        assert operations.orientation(result) == 6
        assert operations.image_dimensions(result) == (64, 48)
