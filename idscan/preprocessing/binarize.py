"""Tone adjustment and binarization for ID photographs.

Provides the colour-control step of the standard enhancement and the
adaptive thresholding used as the fallback strategy for low-contrast
cards.
"""

import cv2
import numpy as np

from idscan.imaging.image import to_gray
from idscan.utils.logger import get_logger

logger = get_logger(__name__)


def color_controls(
    image: np.ndarray,
    contrast: float = 1.1,
    brightness: float = 0.1,
    saturation: float = 0.0,
) -> np.ndarray:
    """Adjust saturation, contrast, and brightness.

    Intensities are handled on a 0-1 scale: contrast stretches around
    mid-grey, brightness is added afterwards. A saturation of zero returns
    a single-channel grayscale image.

    Args:
        image: Input image (RGB or grayscale).
        contrast: Contrast multiplier, 1.0 leaves contrast unchanged.
        brightness: Offset added to every intensity.
        saturation: Colour saturation multiplier.

    Returns:
        Adjusted image.
    """
    if image.ndim == 3 and saturation != 1.0:
        luma = to_gray(image).astype(np.float32) / 255.0
        if saturation == 0.0:
            values = luma
        else:
            rgb = image.astype(np.float32) / 255.0
            values = luma[:, :, None] + saturation * (rgb - luma[:, :, None])
    else:
        values = image.astype(np.float32) / 255.0

    values = (values - 0.5) * contrast + 0.5 + brightness
    result = np.clip(np.rint(values * 255.0), 0, 255).astype(np.uint8)
    logger.debug(
        "Applied colour controls (contrast=%.2f, brightness=%.2f, saturation=%.2f)",
        contrast,
        brightness,
        saturation,
    )
    return result


def adaptive_threshold(
    image: np.ndarray, block_size: int = 11, c: float = 2.0
) -> np.ndarray:
    """Binarize an image against a Gaussian-weighted local mean.

    A pixel becomes white when its value exceeds ``local_mean - c`` and
    black otherwise.

    Args:
        image: Input image (RGB or grayscale).
        block_size: Neighbourhood size; the Gaussian sigma is half of it.
        c: Constant subtracted from the local mean, on the 0-255 scale.

    Returns:
        Binary image with pixel values 0 or 255.

    Raises:
        ValueError: If ``block_size`` is smaller than 3.
    """
    if block_size < 3:
        raise ValueError(f"Block size must be at least 3, got {block_size}")

    gray = to_gray(image).astype(np.float32)
    local_mean = cv2.GaussianBlur(gray, (0, 0), sigmaX=block_size / 2.0)
    result = np.where(gray > local_mean - c, 255, 0).astype(np.uint8)
    logger.debug("Applied adaptive threshold (block=%d, c=%.1f)", block_size, c)
    return result
