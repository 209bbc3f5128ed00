"""Tests for the image quality gate."""

from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from idscan.imaging.image import RawImage
from idscan.quality.analyzer import (
    HIGH_BLUR,
    LOW_RESOLUTION,
    POOR_LIGHTING,
    ImageQualityAnalyzer,
    QualityLevel,
    QualityVerdict,
    calculate_blur_score,
    calculate_brightness,
)
from idscan.utils.config import QualityConfig


class TestBlurScore:
    """Tests for the edge-spread blur score."""

    def test_sharp_card_scores_low(self, card_pixels: np.ndarray) -> None:
        assert calculate_blur_score(card_pixels) < 0.3

    def test_flat_image_is_fully_blurry(self) -> None:
        flat = np.full((100, 100), 128, dtype=np.uint8)
        assert calculate_blur_score(flat) == 1.0

    def test_monotonic_in_blur(self, card_pixels: np.ndarray) -> None:
        slight = cv2.GaussianBlur(card_pixels, (0, 0), sigmaX=2)
        heavy = cv2.GaussianBlur(card_pixels, (0, 0), sigmaX=6)
        scores = [calculate_blur_score(img) for img in (card_pixels, slight, heavy)]
        assert scores == sorted(scores)
        assert all(0.0 <= s <= 1.0 for s in scores)


class TestBrightness:
    """Tests for thumbnail brightness."""

    def test_uniform_image(self) -> None:
        image = np.full((900, 1200), 128, dtype=np.uint8)
        assert calculate_brightness(image) == pytest.approx(128 / 255)

    def test_black_and_white(self) -> None:
        assert calculate_brightness(np.zeros((50, 50), dtype=np.uint8)) == 0.0
        assert calculate_brightness(np.full((50, 50, 3), 255, dtype=np.uint8)) == 1.0


class TestImageQualityAnalyzer:
    """Tests for the ordered quality checks."""

    def test_good_card(self, card_image: RawImage) -> None:
        verdict = ImageQualityAnalyzer().assess(card_image)
        assert verdict.level == QualityLevel.GOOD
        assert verdict.reason is None
        assert 0.25 <= verdict.brightness <= 0.85

    def test_low_resolution_short_circuits(self, small_image: RawImage) -> None:
        with patch("idscan.quality.analyzer.calculate_blur_score") as blur, patch(
            "idscan.quality.analyzer.calculate_brightness"
        ) as brightness:
            verdict = ImageQualityAnalyzer().assess(small_image)

        assert verdict == QualityVerdict.poor(LOW_RESOLUTION)
        blur.assert_not_called()
        brightness.assert_not_called()

    def test_scale_counts_toward_resolution(self, card_factory) -> None:
        image = RawImage(card_factory(height=600, width=900), scale=2.0)
        verdict = ImageQualityAnalyzer().assess(image)
        assert verdict.reason != LOW_RESOLUTION

    def test_custom_min_dimension(self, small_image: RawImage) -> None:
        analyzer = ImageQualityAnalyzer(QualityConfig(min_dimension=200))
        assert analyzer.assess(small_image).reason != LOW_RESOLUTION

    def test_blurry_card(self, card_pixels: np.ndarray) -> None:
        blurred = RawImage(cv2.GaussianBlur(card_pixels, (0, 0), sigmaX=25))
        verdict = ImageQualityAnalyzer().assess(blurred)
        assert verdict.is_poor
        assert verdict.reason == HIGH_BLUR
        assert verdict.blur_score > 0.7
        assert verdict.brightness is None

    def test_dark_card(self, card_factory) -> None:
        image = RawImage(card_factory(background=10, ink=90))
        verdict = ImageQualityAnalyzer().assess(image)
        assert verdict.reason == POOR_LIGHTING
        assert verdict.brightness < 0.2

    def test_overexposed_card(self, card_factory) -> None:
        image = RawImage(card_factory(background=255, ink=200, thickness=4))
        verdict = ImageQualityAnalyzer().assess(image)
        assert verdict.reason == POOR_LIGHTING
        assert verdict.brightness > 0.9

    def test_acceptable_band(self, card_factory) -> None:
        image = RawImage(card_factory(background=230, ink=130, thickness=4))
        verdict = ImageQualityAnalyzer().assess(image)
        assert verdict.level == QualityLevel.ACCEPTABLE
        assert 0.85 < verdict.brightness <= 0.9

    @patch("idscan.quality.analyzer.calculate_blur_score")
    def test_conversion_failure_is_poor(
        self, mock_blur: MagicMock, card_image: RawImage
    ) -> None:
        mock_blur.side_effect = ValueError("unsupported buffer")
        verdict = ImageQualityAnalyzer().assess(card_image)
        assert verdict.is_poor
        assert verdict.reason == "conversion-failed"
