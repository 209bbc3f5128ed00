"""Scan outcomes and the error taxonomy returned to callers."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from idscan.extraction.field_extractor import ExtractedFields


class ScanErrorKind(StrEnum):
    """Kinds of scan failure."""

    IMAGE_CONVERSION_FAILED = "image_conversion_failed"
    POOR_IMAGE_QUALITY = "poor_image_quality"
    NO_TEXT_FOUND = "no_text_found"
    TEXT_RECOGNITION_FAILED = "text_recognition_failed"
    INSUFFICIENT_CONFIDENCE = "insufficient_confidence"
    INVALID_TEXT_FOUND = "invalid_text_found"
    PROCESSING_ERROR = "processing_error"
    CANCELLED = "cancelled"

    @property
    def recoverable(self) -> bool:
        """Whether the fallback enhancement may be tried for this failure."""
        return self in _RECOVERABLE_KINDS


_RECOVERABLE_KINDS = frozenset(
    {
        ScanErrorKind.POOR_IMAGE_QUALITY,
        ScanErrorKind.NO_TEXT_FOUND,
        ScanErrorKind.INSUFFICIENT_CONFIDENCE,
        ScanErrorKind.INVALID_TEXT_FOUND,
    }
)

_QUALITY_GUIDANCE = {
    "low-resolution": "Move closer so the ID fills the frame.",
    "high-blur": "Hold the camera steady and let it focus before capturing.",
    "poor-lighting": "Reduce glare or shadows and retake the photo in even light.",
    "conversion-failed": "The photo could not be read. Please retake it.",
}

_GUIDANCE = {
    ScanErrorKind.IMAGE_CONVERSION_FAILED: (
        "The image format is not supported. Please try a different photo."
    ),
    ScanErrorKind.POOR_IMAGE_QUALITY: (
        "Take a clearer photo with good lighting."
    ),
    ScanErrorKind.NO_TEXT_FOUND: "Make sure the ID is visible and well lit.",
    ScanErrorKind.TEXT_RECOGNITION_FAILED: "The scan failed. Please try again.",
    ScanErrorKind.INSUFFICIENT_CONFIDENCE: (
        "Try again with better lighting and focus."
    ),
    ScanErrorKind.INVALID_TEXT_FOUND: (
        "Make sure the entire ID is in the frame and the text is sharp."
    ),
    ScanErrorKind.PROCESSING_ERROR: "Something went wrong. Please try again.",
    ScanErrorKind.CANCELLED: "The scan was cancelled.",
}


@dataclass(frozen=True)
class ScanSuccess:
    """Scan produced a valid set of identity fields."""

    fields: ExtractedFields

    @property
    def is_success(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success",
            "fields": {key.value: value for key, value in self.fields.items()},
        }


@dataclass(frozen=True)
class ScanFailure:
    """Scan ended without a usable record.

    Args:
        kind: Failure kind.
        detail: Human-readable description of what went wrong.
        reason: Quality reason for ``POOR_IMAGE_QUALITY`` failures.
    """

    kind: ScanErrorKind
    detail: str
    reason: str | None = None

    @property
    def is_success(self) -> bool:
        return False

    @property
    def guidance(self) -> str:
        """Advice the caller can show to the person holding the camera."""
        if self.reason in _QUALITY_GUIDANCE:
            return _QUALITY_GUIDANCE[self.reason]
        return _GUIDANCE[self.kind]

    @classmethod
    def poor_quality(cls, reason: str) -> "ScanFailure":
        return cls(
            ScanErrorKind.POOR_IMAGE_QUALITY,
            f"Image quality is too low ({reason})",
            reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "failure",
            "kind": self.kind.value,
            "detail": self.detail,
            "reason": self.reason,
            "guidance": self.guidance,
        }


ScanResult = ScanSuccess | ScanFailure
