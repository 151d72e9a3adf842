"""Centralized logging helpers.

Provides the root logger configuration used by the CLI, a cheap DEBUG guard,
structured ``extra`` payloads for trace records, and a small timing helper.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from constants import Constants

_CONFIGURED_FLAG = "_extpack_configured"


def configure_logging(log_file: Optional[str] = None) -> None:
    """Configure the root logger once.

    The level comes from ``EXTPACK_LOG_LEVEL`` (default INFO) and the format
    from ``EXTPACK_LOG_FORMAT`` (default ``Constants.LOG_FORMAT``). Calling it
    again only re-applies the level.

    Args:
        log_file: Write records to this file instead of stderr.
    """
    root = logging.getLogger()
    level_name = os.environ.get(Constants.ENV_LOG_LEVEL, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    if not getattr(root, _CONFIGURED_FLAG, False):
        handler: logging.Handler = (
            logging.FileHandler(log_file, encoding="utf-8") if log_file else logging.StreamHandler()
        )
        handler.setFormatter(
            logging.Formatter(os.environ.get(Constants.ENV_LOG_FORMAT, Constants.LOG_FORMAT))
        )
        root.addHandler(handler)
        setattr(root, _CONFIGURED_FLAG, True)

    root.setLevel(level)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped so records stay compact.
    """
    return {key: value for key, value in fields.items() if value is not None}


class Timer:
    """Context manager measuring wall-clock duration in milliseconds."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.monotonic()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.monotonic()

    def duration_ms(self) -> int:
        """Elapsed milliseconds, measured up to now while still running."""
        if self._start is None:
            return 0
        end = self._end if self._end is not None else time.monotonic()
        return int((end - self._start) * 1000)
