"""Tesseract-backed implementation of the text recognition boundary.

Runs ``pytesseract`` on a worker thread, groups word-level output into
lines, and translates Tesseract failures into ``RecognitionError``.
"""

import asyncio
import os
import shlex
import shutil
import tempfile
import threading

import pytesseract
from PIL import Image

from idscan.imaging.image import RawImage
from idscan.utils.config import OCRConfig
from idscan.utils.logger import get_logger

from .base import (
    CancellationToken,
    RecognitionError,
    RecognitionErrorKind,
    RecognizedLine,
    TextRecognizer,
)

logger = get_logger(__name__)


class TesseractRecognizer(TextRecognizer):
    """Text recognizer tuned for ID cards.

    Uses the LSTM engine for accuracy, keeps Tesseract's dictionaries on
    for language correction, and biases recognition toward common ID
    vocabulary through a user-words file.

    Args:
        config: OCR configuration. Defaults to ``OCRConfig()``.
    """

    def __init__(self, config: OCRConfig | None = None) -> None:
        self.config = config or OCRConfig()
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        self._user_words_path: str | None = None
        self._user_words_lock = threading.Lock()

    def is_available(self) -> bool:
        """Whether the Tesseract executable can be found."""
        cmd = self.config.tesseract_cmd or "tesseract"
        return shutil.which(cmd) is not None

    def build_config(self) -> str:
        """Build the Tesseract command-line options for a recognition call."""
        cfg = self.config
        dawg = "1" if cfg.language_correction else "0"
        options = [
            f"--oem {cfg.oem}",
            f"--psm {cfg.psm}",
            f"-c load_system_dawg={dawg}",
            f"-c load_freq_dawg={dawg}",
        ]
        if cfg.vocabulary_hints:
            options.append(f"--user-words {shlex.quote(self._user_words_file())}")
        return " ".join(options)

    def _user_words_file(self) -> str:
        # Called from worker threads; only one file per recognizer.
        with self._user_words_lock:
            if self._user_words_path is None:
                with tempfile.NamedTemporaryFile(
                    "w", prefix="idscan-words-", suffix=".txt", delete=False
                ) as f:
                    f.write("\n".join(self.config.vocabulary_hints) + "\n")
                    self._user_words_path = f.name
                logger.debug("Wrote vocabulary hints to %s", self._user_words_path)
            return self._user_words_path

    def close(self) -> None:
        """Remove the temporary vocabulary file, if one was written."""
        with self._user_words_lock:
            if self._user_words_path is not None:
                try:
                    os.remove(self._user_words_path)
                except FileNotFoundError:
                    pass
                self._user_words_path = None

    async def recognize(
        self, image: RawImage, token: CancellationToken | None = None
    ) -> list[RecognizedLine]:
        """Recognize text lines in an image.

        Args:
            image: Image to read.
            token: Optional cancellation token, checked before and after
                the engine call.

        Returns:
            Recognized lines in reading order, unfiltered.

        Raises:
            RecognitionError: On conversion failure, engine failure, or
                cancellation.
        """
        if token is not None:
            token.raise_if_cancelled()

        try:
            pil_image = image.to_pil()
        except (ValueError, TypeError) as exc:
            raise RecognitionError(
                RecognitionErrorKind.CONVERSION, f"Could not convert image: {exc}"
            ) from exc

        data = await asyncio.to_thread(self._image_to_data, pil_image)

        if token is not None:
            token.raise_if_cancelled()

        lines = self.group_lines(data)
        logger.info("OCR recognized %d lines", len(lines))
        return lines

    def _image_to_data(self, pil_image: Image.Image) -> dict:
        try:
            return pytesseract.image_to_data(
                pil_image,
                lang=self.config.lang,
                config=self.build_config(),
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise RecognitionError(
                RecognitionErrorKind.ENGINE, "Tesseract executable not found"
            ) from exc
        except (pytesseract.TesseractError, RuntimeError) as exc:
            raise RecognitionError(
                RecognitionErrorKind.ENGINE, f"Tesseract failed: {exc}"
            ) from exc

    @staticmethod
    def group_lines(data: dict) -> list[RecognizedLine]:
        """Group word-level Tesseract output into text lines.

        Args:
            data: ``image_to_data`` output in dictionary form.

        Returns:
            One line per ``(block, paragraph, line)`` in emission order, with
            the mean word confidence scaled to ``[0, 1]``.
        """
        count = len(data["text"])
        paragraphs = data.get("par_num", [0] * count)
        groups: dict[tuple[int, int, int], list[tuple[str, float]]] = {}

        for i in range(count):
            word = str(data["text"][i]).strip()
            conf = float(data["conf"][i])
            if conf < 0 or not word:
                continue
            key = (data["block_num"][i], paragraphs[i], data["line_num"][i])
            groups.setdefault(key, []).append((word, conf))

        lines: list[RecognizedLine] = []
        for words in groups.values():
            mean_conf = sum(conf for _, conf in words) / len(words) / 100.0
            lines.append(
                RecognizedLine(
                    text=" ".join(word for word, _ in words),
                    confidence=min(max(mean_conf, 0.0), 1.0),
                )
            )
        return lines
