"""Structured logging configuration.

This module initializes structlog loggers with a stable JSON format.
The minimum level is read from ``STITCH_LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import structlog

from core.constants import DEFAULT_LOG_LEVEL


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog logger with structured JSON output.
    """
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_log_level()),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(name)


def _resolve_log_level() -> int:
    """Map ``STITCH_LOG_LEVEL`` onto a stdlib level number.

    Unknown names fall back to the default level.
    """
    raw_level = os.getenv("STITCH_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    level = logging.getLevelName(raw_level)
    if isinstance(level, int):
        return level
    return logging.getLevelName(DEFAULT_LOG_LEVEL)
