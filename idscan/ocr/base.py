"""Contract for the external text recognition capability.

The scanning pipeline only depends on ``TextRecognizer``; any engine that
can turn an image into ranked text lines can be plugged in. Engine-specific
failures are translated into ``RecognitionError`` with one of three kinds.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

from idscan.imaging.image import RawImage

DEFAULT_CONFIDENCE_FLOOR = 0.3


@dataclass(frozen=True)
class RecognizedLine:
    """One line of recognized text with the engine's confidence in ``[0, 1]``."""

    text: str
    confidence: float


class RecognitionErrorKind(StrEnum):
    """Classes of failure surfaced across the recognition boundary."""

    CONVERSION = "conversion"
    ENGINE = "engine"
    CANCELLED = "cancelled"


class RecognitionError(Exception):
    """Recognition failed or was cancelled.

    Args:
        kind: Failure class.
        message: Human-readable description.
    """

    def __init__(self, kind: RecognitionErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class CancellationToken:
    """Caller-driven cancellation flag shared with a recognition request.

    Safe to cancel from any thread; engines check it before and after the
    blocking call.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RecognitionError(
                RecognitionErrorKind.CANCELLED, "Recognition was cancelled"
            )


class TextRecognizer(ABC):
    """Asynchronous text recognition engine."""

    @abstractmethod
    async def recognize(
        self, image: RawImage, token: CancellationToken | None = None
    ) -> list[RecognizedLine]:
        """Recognize text lines in an image.

        Args:
            image: Image to read.
            token: Optional cancellation token.

        Returns:
            Lines in best-effort top-to-bottom reading order, unfiltered.

        Raises:
            RecognitionError: On conversion failure, engine failure, or
                cancellation.
        """

    def close(self) -> None:
        """Release engine resources. The default has none to release."""


def apply_confidence_floor(
    lines: list[RecognizedLine], floor: float = DEFAULT_CONFIDENCE_FLOOR
) -> list[RecognizedLine]:
    """Drop lines whose confidence is below ``floor`` or that are blank."""
    return [line for line in lines if line.confidence >= floor and line.text.strip()]
