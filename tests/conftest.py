"""Shared test fixtures for the ID scanning test suite."""

from pathlib import Path

import numpy as np
import pytest

from idscan.imaging.image import RawImage


def make_card(
    height: int = 1000,
    width: int = 1400,
    background: int = 180,
    ink: int = 40,
    thickness: int = 10,
    period: int = 40,
    color: bool = True,
) -> np.ndarray:
    """Create a synthetic ID card photo: horizontal ink bars on a flat background."""
    image = np.full((height, width), background, dtype=np.uint8)
    margin = width // 10
    for top in range(period // 2, height - thickness, period):
        image[top : top + thickness, margin : width - margin] = ink
    if color:
        return np.stack([image] * 3, axis=-1)
    return image


@pytest.fixture
def card_pixels() -> np.ndarray:
    """A sharp, evenly lit RGB card large enough to pass the quality gate."""
    return make_card()


@pytest.fixture
def card_image(card_pixels: np.ndarray) -> RawImage:
    return RawImage(card_pixels)


@pytest.fixture
def small_image() -> RawImage:
    """A 400x300 photo, below the minimum resolution."""
    return RawImage(make_card(height=300, width=400))


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"


@pytest.fixture
def card_factory():
    """Return the synthetic card builder for tests that need variations."""
    return make_card
