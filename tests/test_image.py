"""Tests for the immutable image type."""

import numpy as np
import pytest

from idscan.imaging.image import (
    EnhancedImage,
    EnhancementStrategy,
    RawImage,
    rotate_pixels,
    to_gray,
)


class TestRawImage:
    """Tests for RawImage construction and validation."""

    def test_copies_and_freezes_buffer(self, card_pixels: np.ndarray) -> None:
        image = RawImage(card_pixels)
        card_pixels[0, 0] = 0
        assert image.pixels[0, 0, 0] == 180
        assert image.pixels.flags.writeable is False

    def test_dimensions(self, card_image: RawImage) -> None:
        assert card_image.width == 1400
        assert card_image.height == 1000
        assert card_image.is_grayscale is False

    def test_device_size_uses_scale(self) -> None:
        image = RawImage(np.zeros((300, 400), dtype=np.uint8), scale=2.0)
        assert image.device_size == (800.0, 600.0)

    def test_drops_alpha_channel(self) -> None:
        image = RawImage(np.zeros((10, 20, 4), dtype=np.uint8))
        assert image.pixels.shape == (10, 20, 3)

    def test_rejects_non_uint8(self) -> None:
        with pytest.raises(ValueError, match="uint8"):
            RawImage(np.zeros((10, 10), dtype=np.float32))

    def test_rejects_bad_shape(self) -> None:
        with pytest.raises(ValueError, match="shape"):
            RawImage(np.zeros((10, 10, 2), dtype=np.uint8))

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError):
            RawImage(np.zeros((0, 10), dtype=np.uint8))

    def test_rejects_non_positive_scale(self) -> None:
        with pytest.raises(ValueError, match="Scale"):
            RawImage(np.zeros((10, 10), dtype=np.uint8), scale=0)


class TestRawImageOperations:
    """Tests for derived images."""

    def test_grayscale(self, card_image: RawImage) -> None:
        gray = card_image.grayscale()
        assert gray.is_grayscale
        assert gray.pixels.shape == (1000, 1400)

    def test_crop(self, card_image: RawImage) -> None:
        region = card_image.crop(5, 10, 30, 20)
        assert (region.width, region.height) == (30, 20)

    def test_crop_out_of_bounds(self, card_image: RawImage) -> None:
        with pytest.raises(ValueError, match="exceeds"):
            card_image.crop(1390, 0, 20, 20)

    def test_rotate_keeps_canvas(self, card_image: RawImage) -> None:
        rotated = card_image.rotate(3.0)
        assert rotated.pixels.shape == card_image.pixels.shape
        assert rotated.scale == card_image.scale

    def test_encode_and_decode(self) -> None:
        pixels = np.arange(200, dtype=np.uint8).reshape(10, 20)
        decoded = RawImage.from_bytes(RawImage(pixels, scale=3.0).encode(), scale=3.0)
        np.testing.assert_array_equal(decoded.pixels, pixels)
        assert decoded.scale == 3.0

    def test_from_bytes_rejects_garbage(self) -> None:
        with pytest.raises(ValueError, match="decode"):
            RawImage.from_bytes(b"definitely not an image")


class TestHelpers:
    """Tests for module-level pixel helpers."""

    def test_rotate_zero_returns_copy(self) -> None:
        pixels = np.ones((5, 5), dtype=np.uint8)
        rotated = rotate_pixels(pixels, 0)
        assert rotated is not pixels
        np.testing.assert_array_equal(rotated, pixels)

    def test_to_gray_passthrough(self) -> None:
        pixels = np.ones((5, 5), dtype=np.uint8)
        assert to_gray(pixels) is pixels

    def test_enhanced_image_is_raw_image(self) -> None:
        enhanced = EnhancedImage(
            pixels=np.zeros((4, 4), dtype=np.uint8),
            strategy=EnhancementStrategy.ADAPTIVE_THRESHOLD,
        )
        assert isinstance(enhanced, RawImage)
        assert enhanced.strategy == "adaptive_threshold"
        assert enhanced.metrics is None
