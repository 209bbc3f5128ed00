"""Configuration management for the ID scanning pipeline.

Loads and validates YAML configuration with defaults for quality gating,
image enhancement, text recognition, and scan orchestration.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class QualityConfig(BaseModel):
    """Thresholds for the image quality gate."""

    min_dimension: float = 800.0
    max_blur_score: float = 0.7
    max_edge_std_dev: float = 50.0
    min_brightness: float = 0.2
    max_brightness: float = 0.9
    ideal_min_brightness: float = 0.25
    ideal_max_brightness: float = 0.85
    thumbnail_size: int = 100


class EnhancementConfig(BaseModel):
    """Parameters for the enhancement strategies."""

    deskew_enabled: bool = True
    deskew_max_angle: int = 5
    deskew_angle_step: int = 1
    contrast: float = 1.1
    brightness: float = 0.1
    saturation: float = 0.0
    unsharp_radius: float = 1.5
    unsharp_intensity: float = 0.5
    noise_level: float = 0.02
    noise_sharpness: float = 0.4
    block_size: int = 11
    threshold_constant: float = 2.0


class OCRConfig(BaseModel):
    """Configuration for the Tesseract recognition adapter."""

    tesseract_cmd: str | None = None
    lang: str = "eng"
    psm: int = 6
    oem: int = 1
    language_correction: bool = True
    confidence_floor: float = 0.3
    vocabulary_hints: list[str] = Field(
        default_factory=lambda: ["ID", "LICENSE", "PASSPORT", "DRIVER", "STATE"]
    )


class ScanConfig(BaseModel):
    """Configuration for the scan orchestrator."""

    fallback_enabled: bool = True


class AppConfig(BaseModel):
    """Top-level application configuration."""

    quality: QualityConfig = Field(default_factory=QualityConfig)
    enhancement: EnhancementConfig = Field(default_factory=EnhancementConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
