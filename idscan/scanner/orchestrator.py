"""Scan orchestration: quality gate, enhancement, recognition, parsing, validation.

``ScanOrchestrator`` drives one image through the pipeline as a small state
machine. Marginal results (poor quality, no text, low confidence, missing
fields) get exactly one retry with the adaptive-threshold strategy; the
``used_fallback`` flag on the attempt is what bounds the retry.
``ScanSession`` adds "latest scan wins" semantics for interactive callers.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from idscan.extraction.field_extractor import ExtractedFields, FieldExtractor
from idscan.imaging.image import EnhancementStrategy, RawImage
from idscan.ocr.base import (
    CancellationToken,
    RecognitionError,
    RecognitionErrorKind,
    RecognizedLine,
    TextRecognizer,
    apply_confidence_floor,
)
from idscan.preprocessing.enhancer import EnhancementError, ImageEnhancer
from idscan.quality.analyzer import ImageQualityAnalyzer, QualityVerdict
from idscan.utils.config import AppConfig
from idscan.utils.logger import get_logger, mask_value
from idscan.validation.validator import Validator

from .errors import ScanErrorKind, ScanFailure, ScanResult, ScanSuccess

logger = get_logger(__name__)


class ScanState(StrEnum):
    """Stages a scan attempt passes through."""

    IDLE = "idle"
    QUALITY_GATE = "quality_gate"
    ENHANCING = "enhancing"
    FALLBACK_ENHANCING = "fallback_enhancing"
    RECOGNIZING = "recognizing"
    PARSING = "parsing"
    VALIDATING = "validating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_RECOGNITION_FAILURES = {
    RecognitionErrorKind.CONVERSION: ScanErrorKind.IMAGE_CONVERSION_FAILED,
    RecognitionErrorKind.ENGINE: ScanErrorKind.TEXT_RECOGNITION_FAILED,
    RecognitionErrorKind.CANCELLED: ScanErrorKind.CANCELLED,
}


@dataclass(frozen=True)
class ScanAttempt:
    """Finalized record of one pass of an image through the pipeline.

    ``strategies`` lists every enhancement strategy tried, in order;
    ``strategy`` is the one whose output was last recognized, or ``None``
    when recognition ran on the original image.
    """

    attempt_id: str
    verdict: QualityVerdict | None
    strategies: tuple[EnhancementStrategy, ...]
    strategy: EnhancementStrategy | None
    recognized_lines: tuple[RecognizedLine, ...]
    extracted_fields: ExtractedFields
    is_valid: bool
    error: ScanFailure | None
    used_fallback: bool
    states: tuple[ScanState, ...]
    warnings: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.is_valid

    @property
    def result(self) -> ScanResult:
        if self.succeeded:
            return ScanSuccess(dict(self.extracted_fields))
        if self.error is not None:
            return self.error
        return ScanFailure(ScanErrorKind.PROCESSING_ERROR, "Scan did not complete")

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "quality": (
                {"level": self.verdict.level.value, "reason": self.verdict.reason}
                if self.verdict
                else None
            ),
            "strategies": [s.value for s in self.strategies],
            "used_fallback": self.used_fallback,
            "states": [s.value for s in self.states],
            "line_count": len(self.recognized_lines),
            "warnings": list(self.warnings),
            "result": self.result.to_dict(),
        }


@dataclass
class _AttemptBuilder:
    """Mutable working state of an attempt until it is finalized."""

    attempt_id: str
    verdict: QualityVerdict | None = None
    strategies: list[EnhancementStrategy] = field(default_factory=list)
    strategy: EnhancementStrategy | None = None
    recognized_lines: list[RecognizedLine] = field(default_factory=list)
    extracted_fields: ExtractedFields = field(default_factory=dict)
    is_valid: bool = False
    error: ScanFailure | None = None
    used_fallback: bool = False
    states: list[ScanState] = field(default_factory=lambda: [ScanState.IDLE])

    def transition(self, state: ScanState) -> None:
        logger.debug("Scan %s: %s -> %s", self.attempt_id, self.states[-1], state)
        self.states.append(state)

    def succeed(self) -> None:
        self.error = None
        self.transition(ScanState.SUCCEEDED)

    def fail(self, failure: ScanFailure) -> None:
        self.error = failure
        self.is_valid = False
        self.transition(ScanState.FAILED)

    def finalize(self, warnings: list[str]) -> ScanAttempt:
        return ScanAttempt(
            attempt_id=self.attempt_id,
            verdict=self.verdict,
            strategies=tuple(self.strategies),
            strategy=self.strategy,
            recognized_lines=tuple(self.recognized_lines),
            extracted_fields=dict(self.extracted_fields),
            is_valid=self.is_valid,
            error=self.error,
            used_fallback=self.used_fallback,
            states=tuple(self.states),
            warnings=tuple(warnings),
        )


class ScanOrchestrator:
    """Runs ID photographs through the scanning pipeline.

    The orchestrator keeps no per-scan state, so concurrent ``scan`` calls
    on different images are independent. Quality assessment and
    enhancement run on a worker thread; recognition is awaited.

    Args:
        recognizer: Text recognition engine.
        config: Application configuration. Defaults to ``AppConfig()``.
        analyzer: Quality analyzer, built from ``config`` when omitted.
        enhancer: Image enhancer, built from ``config`` when omitted.
        extractor: Field extractor.
        validator: Field validator.
    """

    def __init__(
        self,
        recognizer: TextRecognizer,
        config: AppConfig | None = None,
        analyzer: ImageQualityAnalyzer | None = None,
        enhancer: ImageEnhancer | None = None,
        extractor: FieldExtractor | None = None,
        validator: Validator | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.recognizer = recognizer
        self.analyzer = analyzer or ImageQualityAnalyzer(self.config.quality)
        self.enhancer = enhancer or ImageEnhancer(self.config.enhancement)
        self.extractor = extractor or FieldExtractor()
        self.validator = validator or Validator()

    async def scan(
        self, image: RawImage, token: CancellationToken | None = None
    ) -> ScanAttempt:
        """Scan one ID photograph.

        Args:
            image: Photograph supplied by the caller.
            token: Optional cancellation token for this attempt.

        Returns:
            The finalized attempt; ``attempt.result`` is the caller-facing
            success or failure.
        """
        token = token or CancellationToken()
        builder = _AttemptBuilder(attempt_id=uuid.uuid4().hex[:12])
        warnings: list[str] = []
        logger.info(
            "Scan %s started (%dx%d, scale %.1f)",
            builder.attempt_id,
            image.width,
            image.height,
            image.scale,
        )

        try:
            await self._run(builder, image, token, warnings)
        except Exception as exc:
            logger.exception("Scan %s failed unexpectedly", builder.attempt_id)
            builder.fail(ScanFailure(ScanErrorKind.PROCESSING_ERROR, str(exc)))

        attempt = builder.finalize(warnings)
        if attempt.succeeded:
            logger.info(
                "Scan %s succeeded (fallback=%s)", attempt.attempt_id, attempt.used_fallback
            )
        else:
            logger.info(
                "Scan %s failed: %s (fallback=%s)",
                attempt.attempt_id,
                attempt.error.kind if attempt.error else "unknown",
                attempt.used_fallback,
            )
        return attempt

    def _can_fallback(self, builder: _AttemptBuilder) -> bool:
        return self.config.scan.fallback_enabled and not builder.used_fallback

    async def _run(
        self,
        builder: _AttemptBuilder,
        image: RawImage,
        token: CancellationToken,
        warnings: list[str],
    ) -> None:
        builder.transition(ScanState.QUALITY_GATE)
        verdict = await asyncio.to_thread(self.analyzer.assess, image)
        builder.verdict = verdict

        if verdict.is_poor:
            failure = ScanFailure.poor_quality(verdict.reason or "unknown")
            if not self._can_fallback(builder):
                builder.fail(failure)
                return
            logger.warning(
                "Scan %s: poor quality (%s), trying fallback enhancement",
                builder.attempt_id,
                verdict.reason,
            )
            source = await self._enhance(builder, image, fallback=True)
        else:
            source = await self._enhance(builder, image, fallback=False)

        failure = await self._recognize(builder, source, token, warnings)

        if failure is not None and failure.kind.recoverable and self._can_fallback(builder):
            logger.warning(
                "Scan %s: %s, trying fallback enhancement",
                builder.attempt_id,
                failure.kind,
            )
            source = await self._enhance(builder, image, fallback=True)
            failure = await self._recognize(builder, source, token, warnings)

        if failure is None:
            builder.succeed()
        else:
            builder.fail(failure)

    async def _enhance(
        self, builder: _AttemptBuilder, image: RawImage, fallback: bool
    ) -> RawImage:
        """Apply the primary or fallback strategy, or return the original image."""
        if fallback:
            strategy = EnhancementStrategy.ADAPTIVE_THRESHOLD
            builder.used_fallback = True
            builder.transition(ScanState.FALLBACK_ENHANCING)
        else:
            strategy = EnhancementStrategy.STANDARD
            builder.transition(ScanState.ENHANCING)
        builder.strategies.append(strategy)

        try:
            enhanced = await asyncio.to_thread(self.enhancer.enhance, image, strategy)
        except EnhancementError as exc:
            logger.warning(
                "Scan %s: %s enhancement unavailable (%s), using original image",
                builder.attempt_id,
                strategy,
                exc,
            )
            builder.strategy = None
            return image

        builder.strategy = strategy
        return enhanced

    async def _recognize(
        self,
        builder: _AttemptBuilder,
        source: RawImage,
        token: CancellationToken,
        warnings: list[str],
    ) -> ScanFailure | None:
        """Recognize, parse, and validate. Returns the failure, if any."""
        builder.recognized_lines = []
        builder.extracted_fields = {}
        builder.is_valid = False
        warnings.clear()
        builder.transition(ScanState.RECOGNIZING)
        if token.cancelled:
            return ScanFailure(ScanErrorKind.CANCELLED, "Scan was cancelled")

        try:
            lines = await self.recognizer.recognize(source, token)
        except RecognitionError as exc:
            logger.warning("Scan %s: recognition error: %s", builder.attempt_id, exc)
            return ScanFailure(_RECOGNITION_FAILURES[exc.kind], exc.message)

        if token.cancelled:
            return ScanFailure(ScanErrorKind.CANCELLED, "Scan was cancelled")

        confident = apply_confidence_floor(lines, self.config.ocr.confidence_floor)
        builder.recognized_lines = confident
        logger.debug(
            "Scan %s: %d of %d lines above confidence floor",
            builder.attempt_id,
            len(confident),
            len(lines),
        )
        if not any(line.text.strip() for line in lines):
            return ScanFailure(ScanErrorKind.NO_TEXT_FOUND, "No text found in the image")
        if not confident:
            return ScanFailure(
                ScanErrorKind.INSUFFICIENT_CONFIDENCE,
                "Could not recognize text with sufficient confidence",
            )

        builder.transition(ScanState.PARSING)
        fields = self.extractor.extract([line.text for line in confident])
        builder.extracted_fields = fields
        logger.debug(
            "Scan %s: extracted %s",
            builder.attempt_id,
            {key.value: mask_value(value) for key, value in fields.items()},
        )

        builder.transition(ScanState.VALIDATING)
        report = self.validator.check(fields)
        builder.is_valid = report.is_valid
        warnings[:] = report.warnings
        if not report.is_valid:
            return ScanFailure(
                ScanErrorKind.INVALID_TEXT_FOUND,
                f"Could not extract required information from ID. {report.message}",
            )
        return None


class ScanSession:
    """Keeps the most recent scan for an interactive caller.

    Submitting a new image cancels the scan still in flight. A superseded
    scan finishes as ``CANCELLED`` and never replaces ``latest_attempt``.

    Args:
        orchestrator: Orchestrator used for every scan in the session.
    """

    def __init__(self, orchestrator: ScanOrchestrator) -> None:
        self.orchestrator = orchestrator
        self.latest_attempt: ScanAttempt | None = None
        self._current_token: CancellationToken | None = None

    async def submit(self, image: RawImage) -> ScanAttempt:
        """Scan an image, superseding any scan still in flight."""
        self.cancel()
        token = CancellationToken()
        self._current_token = token

        attempt = await self.orchestrator.scan(image, token)

        if token is self._current_token:
            self.latest_attempt = attempt
            self._current_token = None
        else:
            logger.info("Discarding result of superseded scan %s", attempt.attempt_id)
        return attempt

    def cancel(self) -> None:
        """Cancel the scan in flight, if any."""
        if self._current_token is not None:
            self._current_token.cancel()
            self._current_token = None
