"""Sharpening and noise reduction filters for ID photographs.

Both filters work on 8-bit grayscale or RGB arrays and return a new
array of the same shape.
"""

import cv2
import numpy as np

from idscan.utils.logger import get_logger

logger = get_logger(__name__)


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def unsharp_mask(
    image: np.ndarray, radius: float = 1.5, intensity: float = 0.5
) -> np.ndarray:
    """Sharpen an image by adding back the difference from a blurred copy.

    Args:
        image: Input image as a numpy array.
        radius: Gaussian sigma of the blurred copy.
        intensity: Weight of the added detail.

    Returns:
        Sharpened image.
    """
    source = image.astype(np.float32)
    blurred = cv2.GaussianBlur(source, (0, 0), sigmaX=radius)
    result = _to_uint8(source + intensity * (source - blurred))
    logger.debug("Applied unsharp mask (radius=%.1f, intensity=%.2f)", radius, intensity)
    return result


def reduce_noise(
    image: np.ndarray, noise_level: float = 0.02, sharpness: float = 0.4
) -> np.ndarray:
    """Smooth low-amplitude noise while keeping character edges crisp.

    A bilateral filter flattens intensity differences around
    ``noise_level`` (on a 0-1 scale) and a light sharpening pass restores
    the edges it softened.

    Args:
        image: Input image as a numpy array.
        noise_level: Intensity difference treated as noise, in ``[0, 1]``.
        sharpness: Weight of the edge-restoring sharpening pass.

    Returns:
        Denoised image with edges preserved.
    """
    sigma_color = max(noise_level * 255.0, 1.0)
    smoothed = cv2.bilateralFilter(image, 5, sigma_color, 3.0).astype(np.float32)
    if sharpness > 0:
        detail = smoothed - cv2.GaussianBlur(smoothed, (0, 0), sigmaX=1.0)
        smoothed = smoothed + sharpness * detail
    logger.debug(
        "Applied noise reduction (level=%.3f, sharpness=%.2f)", noise_level, sharpness
    )
    return _to_uint8(smoothed)
