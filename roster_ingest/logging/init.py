from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for the importer.

Every line is ``LABEL message`` with LABEL one of DEBUG, INFO, WARN, ERROR,
SUMMARY. Modules log through ``logging.getLogger(__name__)``; those loggers
sit under ``roster_ingest`` and reach the single stdout handler installed
here. The SUMMARY level (25) carries the one-line run summary.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
]

APP_LOGGER_NAME = "roster_ingest"
SUMMARY_LEVEL = 25

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        SUMMARY_LEVEL: "SUMMARY",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info and record.levelno >= logging.ERROR:
            # tracebacks only for logger.exception(); keeps row errors to one line
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _apply_level(logger: logging.Logger, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def setup_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Install the labeled stdout handler on the ``roster_ingest`` logger.

    Safe to call repeatedly: later calls only switch between INFO and DEBUG.
    """
    global _configured

    if _configured is not None:
        _apply_level(_configured, debug)
        return _configured

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(APP_LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    # root handlers (pytest, host apps) would print every line twice
    logger.propagate = False
    _apply_level(logger, debug)

    _configured = logger
    return logger


def get_logger() -> logging.Logger:
    return _configured or setup_logging()


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Detach the handler and forget the configured logger (tests)."""
    global _configured
    if _configured is not None:
        for handler in list(_configured.handlers):
            _configured.removeHandler(handler)
        _configured.propagate = True
    _configured = None
