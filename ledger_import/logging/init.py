from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

All output goes through the ``ledger_import`` logger; modules log through
``logging.getLogger(__name__)`` and propagate into it. Lines are printed as
``LABEL message`` on stdout with the labels INFO|WARN|ERROR|SUMMARY, where
SUMMARY is a custom level used for the one-line result of every imported file.
"""

__all__ = [
    "SUMMARY_LEVEL",
    "LOGGER_NAME",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "enable_debug",
    "log_summary",
    "reset_logging",
]

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

LOGGER_NAME = "ledger_import"

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formatter printing ``LABEL message`` (WARNING is shortened to WARN)."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        message = f"{level_label} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging() -> logging.Logger:
    """Configure the application logger (idempotent).

    Returns:
        Configured logger instance for the application
    """
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def enable_debug() -> None:
    """Lower the application logger and its handlers to DEBUG (--debug)."""
    logger = get_logger()
    for h in logger.handlers:
        h.setLevel(logging.DEBUG)
    logger.setLevel(logging.DEBUG)
    logger.debug("debug mode enabled")


def log_summary(message: str) -> None:
    """Log a message at SUMMARY level.

    Args:
        message: The summary message to log (without the ``SUMMARY`` label)
    """
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    _logger = None
