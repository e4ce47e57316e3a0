"""Centralized logging helpers.

Provides a single ``configure_logging`` entry point plus small helpers used
by the HTTP client and installer for structured DEBUG traces.
"""

from __future__ import annotations

import logging
import os
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_REDACTED = "[REDACTED]"
_SENSITIVE_QUERY_KEYS = {"token", "access_token", "auth", "key", "password", "secret"}


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once, honouring DEPINSTALL_LOG_LEVEL."""
    level_name = (level or os.environ.get(Constants.LOG_LEVEL_ENV) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping for structured log records.

    None values are dropped so formatters never see empty keys.
    """
    return {k: v for k, v in fields.items() if v is not None}


def redact(value: str) -> str:
    """Mask a secret, keeping nothing of the original."""
    return _REDACTED if value else value


def safe_url(url: str) -> str:
    """Strip credentials and sensitive query values from a URL for logging."""
    try:
        parts = urllib.parse.urlsplit(str(url))
    except ValueError:
        return _REDACTED
    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{_REDACTED}@{netloc.rsplit('@', 1)[1]}"
    query = parts.query
    if query:
        pairs = urllib.parse.parse_qsl(query, keep_blank_values=True)
        query = urllib.parse.urlencode(
            [(k, redact(v) if k.lower() in _SENSITIVE_QUERY_KEYS else v) for k, v in pairs]
        )
    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds, measured up to now while still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
