"""Logging setup for the ID scanning pipeline.

Configures the root logger once for the application and provides a
masking helper so identity values never reach the logs in clear text.
"""

import logging
import sys
from typing import TextIO

# Third-party loggers that are chatty at DEBUG while decoding images.
_NOISY_LOGGERS = ("PIL", "pytesseract")


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure the root logger with a standard format.

    Calling this more than once is a no-op, so library users who already
    configured logging keep their handlers.

    Args:
        level: Logging level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        stream: Output stream for the handler. Defaults to stdout.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)


def mask_value(value: str, visible: int = 1) -> str:
    """Mask a personal value for logging, keeping the first characters of each word.

    ``"John Doe"`` becomes ``"J*** D**"``.

    Args:
        value: Value to mask.
        visible: Number of leading characters kept per word.

    Returns:
        Masked representation with the original word lengths.
    """
    return " ".join(
        word[:visible] + "*" * max(len(word) - visible, 0) for word in value.split()
    )
