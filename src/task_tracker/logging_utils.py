"""Configure the loguru sink and format log payloads."""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger

from .constants import DEFAULT_LOG_LEVEL

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - {message}"
)


def configure_logging(level: str = DEFAULT_LOG_LEVEL, sink: Any = None) -> int:
    """Send tracker logs at *level* and above to stderr, or to *sink*.

    Replaces every existing handler; returns the new handler id.
    """
    logger.remove()
    return logger.add(
        sys.stderr if sink is None else sink,
        level=level.upper(),
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Indented JSON for a log line, or ``str(obj)`` when it will not serialize."""
    try:
        return json.dumps(obj, indent=indent, default=str)
    except (TypeError, ValueError):
        return str(obj)
