"""Image quality gate for ID photographs.

Rejects photographs that are too small, too blurry, or badly lit before
the expensive enhancement and recognition stages run.
"""

from dataclasses import dataclass
from enum import StrEnum

import cv2
import numpy as np

from idscan.imaging.image import RawImage, to_gray
from idscan.utils.config import QualityConfig
from idscan.utils.logger import get_logger

logger = get_logger(__name__)

LOW_RESOLUTION = "low-resolution"
HIGH_BLUR = "high-blur"
POOR_LIGHTING = "poor-lighting"
CONVERSION_FAILED = "conversion-failed"


class QualityLevel(StrEnum):
    """Coarse quality classes returned by the analyzer."""

    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"


@dataclass(frozen=True)
class QualityVerdict:
    """Outcome of a quality assessment.

    ``reason`` is only set for poor verdicts. The measurements are ``None``
    when the check that produces them was never reached.
    """

    level: QualityLevel
    reason: str | None = None
    blur_score: float | None = None
    brightness: float | None = None

    @classmethod
    def good(cls, **measurements: float) -> "QualityVerdict":
        return cls(QualityLevel.GOOD, **measurements)

    @classmethod
    def acceptable(cls, **measurements: float) -> "QualityVerdict":
        return cls(QualityLevel.ACCEPTABLE, **measurements)

    @classmethod
    def poor(cls, reason: str, **measurements: float) -> "QualityVerdict":
        return cls(QualityLevel.POOR, reason, **measurements)

    @property
    def is_poor(self) -> bool:
        return self.level == QualityLevel.POOR


def calculate_blur_score(image: np.ndarray, max_std_dev: float = 50.0) -> float:
    """Score how blurry an image is from the spread of its edge intensities.

    A Sobel gradient magnitude image is computed over the full frame and
    its standard deviation is normalized against ``max_std_dev``. Sharp
    images have a wide spread of edge strengths; blur flattens it.

    Args:
        image: Grayscale or RGB pixel array.
        max_std_dev: Edge standard deviation treated as perfectly sharp.

    Returns:
        Blur score in ``[0, 1]`` where higher means blurrier.
    """
    gray = to_gray(image).astype(np.float64)
    grad_x = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
    grad_y = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
    edge_std = float(cv2.magnitude(grad_x, grad_y).std())
    return float(np.clip(1.0 - edge_std / max_std_dev, 0.0, 1.0))


def calculate_brightness(image: np.ndarray, thumbnail_size: int = 100) -> float:
    """Average brightness of an image, measured on a small thumbnail.

    Args:
        image: Grayscale or RGB pixel array.
        thumbnail_size: Length of the thumbnail's longer side in pixels.

    Returns:
        Mean intensity in ``[0, 1]``.
    """
    h, w = image.shape[:2]
    longer = max(h, w)
    if longer > thumbnail_size:
        factor = thumbnail_size / longer
        size = (max(1, round(w * factor)), max(1, round(h * factor)))
        image = cv2.resize(image, size, interpolation=cv2.INTER_AREA)
    return float(to_gray(image).mean()) / 255.0


class ImageQualityAnalyzer:
    """Classifies photographs as good, acceptable, or poor for recognition.

    Checks run in order (resolution, blur, brightness) and stop at the
    first poor result.

    Args:
        config: Quality thresholds. Defaults to ``QualityConfig()``.
    """

    def __init__(self, config: QualityConfig | None = None) -> None:
        self.config = config or QualityConfig()

    def assess(self, image: RawImage) -> QualityVerdict:
        """Assess whether an image is usable for text recognition.

        Args:
            image: Photograph to assess.

        Returns:
            Quality verdict. Internal conversion problems produce
            ``Poor("conversion-failed")`` instead of raising.
        """
        cfg = self.config
        width, height = image.device_size
        if min(width, height) < cfg.min_dimension:
            logger.info("Quality gate: low resolution %.0fx%.0f", width, height)
            return QualityVerdict.poor(LOW_RESOLUTION)

        try:
            blur_score = calculate_blur_score(image.pixels, cfg.max_edge_std_dev)
            if blur_score > cfg.max_blur_score:
                logger.info("Quality gate: high blur score %.2f", blur_score)
                return QualityVerdict.poor(HIGH_BLUR, blur_score=blur_score)

            brightness = calculate_brightness(image.pixels, cfg.thumbnail_size)
        except (cv2.error, ValueError) as exc:
            logger.warning("Quality gate: image conversion failed: %s", exc)
            return QualityVerdict.poor(CONVERSION_FAILED)

        measurements = {"blur_score": blur_score, "brightness": brightness}
        if brightness < cfg.min_brightness or brightness > cfg.max_brightness:
            logger.info("Quality gate: poor lighting, brightness %.2f", brightness)
            return QualityVerdict.poor(POOR_LIGHTING, **measurements)

        if brightness < cfg.ideal_min_brightness or brightness > cfg.ideal_max_brightness:
            logger.debug("Quality gate: acceptable, brightness %.2f", brightness)
            return QualityVerdict.acceptable(**measurements)

        logger.debug(
            "Quality gate: good (blur %.2f, brightness %.2f)", blur_score, brightness
        )
        return QualityVerdict.good(**measurements)
