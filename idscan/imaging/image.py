"""Immutable image type shared by every pipeline stage.

``RawImage`` is the single image capability the pipeline depends on:
decoding, grayscale conversion, cropping, rotation, and encoding are all
expressed here on top of a read-only numpy buffer, so the processing code
never touches Pillow or OpenCV image objects directly.
"""

import io
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

if TYPE_CHECKING:
    from idscan.preprocessing.enhancer import QualityMetrics


class EnhancementStrategy(StrEnum):
    """Named enhancement strategies applied before recognition."""

    STANDARD = "standard"
    ADAPTIVE_THRESHOLD = "adaptive_threshold"


def to_gray(pixels: np.ndarray) -> np.ndarray:
    """Convert a pixel buffer to single-channel grayscale.

    Args:
        pixels: Grayscale ``(H, W)`` or RGB ``(H, W, 3)`` array.

    Returns:
        Grayscale ``uint8`` array. Grayscale input is returned unchanged.
    """
    if pixels.ndim == 3:
        return cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)
    return pixels


@dataclass(frozen=True, eq=False)
class RawImage:
    """Read-only bitmap with a capture scale factor.

    The buffer is copied on construction and marked non-writeable, so the
    caller's array can change afterwards without affecting the pipeline.

    Args:
        pixels: ``uint8`` array, either ``(H, W)`` grayscale or
            ``(H, W, 3|4)`` RGB(A). An alpha channel is dropped.
        scale: Points-to-pixels factor reported by the capture device.

    Raises:
        ValueError: If the buffer shape, dtype, or scale is unusable.
    """

    pixels: np.ndarray
    scale: float = 1.0

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.ndim == 3 and pixels.shape[2] == 4:
            pixels = pixels[:, :, :3]
        if pixels.ndim not in (2, 3) or (pixels.ndim == 3 and pixels.shape[2] != 3):
            raise ValueError(f"Unsupported pixel buffer shape: {pixels.shape}")
        if pixels.size == 0:
            raise ValueError("Image has no pixels")
        if self.scale <= 0:
            raise ValueError(f"Scale must be positive, got {self.scale}")

        frozen = np.array(pixels, dtype=np.uint8, copy=True, order="C")
        frozen.setflags(write=False)
        object.__setattr__(self, "pixels", frozen)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def is_grayscale(self) -> bool:
        return self.pixels.ndim == 2

    @property
    def device_size(self) -> tuple[float, float]:
        """Width and height in device pixels (buffer size times scale)."""
        return self.width * self.scale, self.height * self.scale

    @classmethod
    def from_array(cls, pixels: np.ndarray, scale: float = 1.0) -> "RawImage":
        return cls(pixels=pixels, scale=scale)

    @classmethod
    def from_pil(cls, image: Image.Image, scale: float = 1.0) -> "RawImage":
        """Build an image from a Pillow image, honouring EXIF orientation."""
        image = ImageOps.exif_transpose(image)
        if image.mode not in ("L", "RGB"):
            image = image.convert("RGB")
        return cls(pixels=np.array(image), scale=scale)

    @classmethod
    def from_bytes(cls, data: bytes, scale: float = 1.0) -> "RawImage":
        """Decode an encoded image (PNG, JPEG, TIFF, ...).

        Raises:
            ValueError: If the bytes are not a decodable image.
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                return cls.from_pil(image, scale)
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"Could not decode image: {exc}") from exc

    @classmethod
    def from_path(cls, path: Path, scale: float = 1.0) -> "RawImage":
        return cls.from_bytes(Path(path).read_bytes(), scale)

    def derive(self, pixels: np.ndarray) -> "RawImage":
        """Create a new image from processed pixels, keeping the scale."""
        return RawImage(pixels=pixels, scale=self.scale)

    def grayscale(self) -> "RawImage":
        return self.derive(to_gray(self.pixels))

    def crop(self, x: int, y: int, width: int, height: int) -> "RawImage":
        """Return the rectangular region starting at ``(x, y)``.

        Raises:
            ValueError: If the region falls outside the image.
        """
        if x < 0 or y < 0 or width <= 0 or height <= 0:
            raise ValueError("Crop region must have a non-negative origin and size")
        if x + width > self.width or y + height > self.height:
            raise ValueError(
                f"Crop region {width}x{height}+{x}+{y} exceeds "
                f"image size {self.width}x{self.height}"
            )
        return self.derive(self.pixels[y : y + height, x : x + width])

    def rotate(self, angle: float) -> "RawImage":
        """Rotate about the centre by ``angle`` degrees (counter-clockwise).

        The canvas size is preserved and uncovered corners replicate the
        nearest border pixels.
        """
        return self.derive(rotate_pixels(self.pixels, angle, cv2.BORDER_REPLICATE))

    def encode(self, fmt: str = "PNG") -> bytes:
        buf = io.BytesIO()
        self.to_pil().save(buf, format=fmt)
        return buf.getvalue()

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)


def rotate_pixels(
    pixels: np.ndarray, angle: float, border_mode: int = cv2.BORDER_CONSTANT
) -> np.ndarray:
    """Rotate a pixel buffer about its centre, keeping the canvas size.

    Args:
        pixels: Input array.
        angle: Rotation in degrees, counter-clockwise.
        border_mode: OpenCV border mode for uncovered pixels.

    Returns:
        Rotated array with the same shape and dtype.
    """
    if angle == 0:
        return pixels.copy()
    h, w = pixels.shape[:2]
    matrix = cv2.getRotationMatrix2D((w / 2, h / 2), angle, 1.0)
    return cv2.warpAffine(
        pixels,
        matrix,
        (w, h),
        flags=cv2.INTER_LINEAR,
        borderMode=border_mode,
    )


@dataclass(frozen=True, eq=False, kw_only=True)
class EnhancedImage(RawImage):
    """An image produced by one enhancement strategy.

    Args:
        strategy: Strategy that produced this image.
        metrics: Sharpness and contrast before and after enhancement.
    """

    strategy: EnhancementStrategy
    metrics: "QualityMetrics | None" = None
