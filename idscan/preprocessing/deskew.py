"""Deskew correction for photographed ID cards.

Estimates the tilt of the text rows with a brute-force search over a small
set of candidate angles and rotates the photograph back to horizontal.
"""

import cv2
import numpy as np

from idscan.imaging.image import rotate_pixels, to_gray
from idscan.utils.logger import get_logger

logger = get_logger(__name__)


def candidate_angles(max_angle: int = 5, step: int = 1) -> list[float]:
    """Candidate skew angles from ``-max_angle`` to ``+max_angle`` inclusive."""
    if step <= 0:
        raise ValueError(f"Angle step must be positive, got {step}")
    return [float(a) for a in range(-max_angle, max_angle + 1, step)]


def projection_variance(edges: np.ndarray) -> float:
    """Variance of the horizontal projection (row sums) of an edge image.

    Text rows that run exactly horizontally concentrate their edges in a
    few rows, which maximizes this variance.
    """
    profile = edges.astype(np.float64).sum(axis=1)
    return float(profile.var())


def detect_skew_angle(
    image: np.ndarray, max_angle: int = 5, step: int = 1
) -> float:
    """Detect the skew angle of a document photograph.

    Each candidate skew is undone on the edge image and the projection
    variance is measured. Ties go to the smallest absolute angle, so a
    featureless image reports no skew.

    Args:
        image: Input image as a numpy array (RGB or grayscale).
        max_angle: Largest skew considered, in degrees.
        step: Spacing between candidate angles, in degrees.

    Returns:
        Estimated skew in degrees, counter-clockwise positive.
    """
    edges = cv2.Canny(to_gray(image), 50, 150, apertureSize=3)

    best_angle = 0.0
    best_variance = -1.0
    for angle in sorted(candidate_angles(max_angle, step), key=lambda a: (abs(a), a)):
        variance = projection_variance(rotate_pixels(edges, -angle))
        if variance > best_variance:
            best_variance = variance
            best_angle = angle

    logger.debug("Detected skew angle: %.1f degrees", best_angle)
    return best_angle


def deskew(image: np.ndarray, max_angle: int = 5, step: int = 1) -> np.ndarray:
    """Correct rotational skew in a document photograph.

    Args:
        image: Input image as a numpy array (RGB or grayscale).
        max_angle: Largest skew considered, in degrees.
        step: Spacing between candidate angles, in degrees.

    Returns:
        Deskewed image with the same shape and dtype as the input.
    """
    angle = detect_skew_angle(image, max_angle, step)

    if angle == 0:
        logger.debug("No skew detected, skipping correction")
        return image.copy()

    result = rotate_pixels(image, -angle, cv2.BORDER_REPLICATE)
    logger.info("Applied deskew correction: %.1f degrees", angle)
    return result
