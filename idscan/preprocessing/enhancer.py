"""Enhancement strategies that prepare ID photographs for recognition.

Runs the standard (deskew, tone, sharpen, denoise) or adaptive-threshold
strategy, measuring quality before and after. Each step is isolated so a
failure is reported with the step that caused it.
"""

from collections.abc import Callable
from dataclasses import dataclass

import cv2
import numpy as np

from idscan.imaging.image import EnhancedImage, EnhancementStrategy, RawImage, to_gray
from idscan.utils.config import EnhancementConfig
from idscan.utils.logger import get_logger

from .binarize import adaptive_threshold, color_controls
from .denoise import reduce_noise, unsharp_mask
from .deskew import deskew

logger = get_logger(__name__)


class EnhancementError(Exception):
    """Base class for enhancement failures.

    Args:
        step: Name of the step that failed.
        message: Description of the failure.
    """

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step


class ImageConversionFailed(EnhancementError):
    """The source pixels could not be converted into a working buffer."""


class FilterProcessingFailed(EnhancementError):
    """A filter step raised while processing the image."""


class OutputCreationFailed(EnhancementError):
    """The processed pixels could not be turned into an output image."""


@dataclass
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


def calculate_sharpness(image: np.ndarray) -> float:
    """Calculate image sharpness using Laplacian variance.

    Args:
        image: Input image (RGB or grayscale).

    Returns:
        Sharpness score (higher means sharper).
    """
    return float(cv2.Laplacian(to_gray(image), cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities.

    Args:
        image: Input image (RGB or grayscale).

    Returns:
        Contrast score (higher means more contrast).
    """
    return float(to_gray(image).std())


class ImageEnhancer:
    """Applies a named enhancement strategy to an image.

    The enhancer holds configuration only; the source image is never
    modified and every call returns a new ``EnhancedImage``.

    Args:
        config: Enhancement parameters. Defaults to ``EnhancementConfig()``.
    """

    def __init__(self, config: EnhancementConfig | None = None) -> None:
        self.config = config or EnhancementConfig()

    def enhance(self, image: RawImage, strategy: EnhancementStrategy) -> EnhancedImage:
        """Run one enhancement strategy on an image.

        Args:
            image: Source image.
            strategy: Strategy to apply.

        Returns:
            The enhanced image.

        Raises:
            ImageConversionFailed: The source could not be prepared.
            FilterProcessingFailed: A filter step failed.
            OutputCreationFailed: The result could not be assembled.
        """
        working = self._convert(image)

        if strategy == EnhancementStrategy.STANDARD:
            result = self._standard(working)
        elif strategy == EnhancementStrategy.ADAPTIVE_THRESHOLD:
            result = self._run(
                "adaptive_threshold",
                adaptive_threshold,
                working,
                self.config.block_size,
                self.config.threshold_constant,
            )
        else:
            raise ValueError(f"Unsupported enhancement strategy: {strategy}")

        return self._finish(image, result, strategy)

    def _standard(self, working: np.ndarray) -> np.ndarray:
        cfg = self.config
        if cfg.deskew_enabled:
            working = self._run(
                "deskew", deskew, working, cfg.deskew_max_angle, cfg.deskew_angle_step
            )
        working = self._run(
            "color_controls",
            color_controls,
            working,
            cfg.contrast,
            cfg.brightness,
            cfg.saturation,
        )
        working = self._run(
            "unsharp_mask", unsharp_mask, working, cfg.unsharp_radius, cfg.unsharp_intensity
        )
        return self._run(
            "noise_reduction", reduce_noise, working, cfg.noise_level, cfg.noise_sharpness
        )

    def _convert(self, image: RawImage) -> np.ndarray:
        try:
            working = np.array(image.pixels, dtype=np.uint8, copy=True)
            to_gray(working)
        except (cv2.error, ValueError, TypeError) as exc:
            raise ImageConversionFailed("convert", str(exc)) from exc
        return working

    def _run(self, step: str, func: Callable[..., np.ndarray], *args: object) -> np.ndarray:
        try:
            return func(*args)
        except (cv2.error, ValueError, TypeError) as exc:
            logger.warning("Enhancement step %s failed: %s", step, exc)
            raise FilterProcessingFailed(step, str(exc)) from exc

    def _finish(
        self, source: RawImage, pixels: np.ndarray, strategy: EnhancementStrategy
    ) -> EnhancedImage:
        try:
            metrics = QualityMetrics(
                sharpness_before=calculate_sharpness(source.pixels),
                sharpness_after=calculate_sharpness(pixels),
                contrast_before=calculate_contrast(source.pixels),
                contrast_after=calculate_contrast(pixels),
            )
            enhanced = EnhancedImage(
                pixels=pixels, scale=source.scale, strategy=strategy, metrics=metrics
            )
        except (cv2.error, ValueError, TypeError) as exc:
            raise OutputCreationFailed("output", str(exc)) from exc

        logger.info(
            "Enhancement (%s) complete: sharpness %.1f->%.1f, contrast %.1f->%.1f",
            strategy,
            metrics.sharpness_before,
            metrics.sharpness_after,
            metrics.contrast_before,
            metrics.contrast_after,
        )
        return enhanced
