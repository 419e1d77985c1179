"""Logging configuration helpers for SmartEval."""

from __future__ import annotations

import logging
from logging import Logger

# Per-request INFO lines from the HTTP client drown out the assessment events.
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: int = logging.INFO) -> Logger:
    """Configure basic logging for the server and client and return the package logger."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    logger = logging.getLogger("smarteval")
    logger.setLevel(level)
    return logger
