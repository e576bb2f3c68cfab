"""
src/clinrep/core/logging.py

One JSON line per log record, tagged with the current request id.

Records emitted while serving a request carry the id assigned by
``RequestIDMiddleware``, so a search can be followed through the session
handshake, the retry and the upstream call:

    {"timestamp": "...", "level": "INFO", "logger": "clinrep.repertory.session",
     "message": "repertory session established", "request_id": "7f0c...",
     "event": "session_established", "cookie_count": 2}

Only the whitelisted ``extra=`` keys below reach the output. Cookie values
and upstream bodies are never logged.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

__all__ = [
    "request_id_ctx",
    "setup_json_logging",
]

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

# access log
_HTTP_FIELDS = ("method", "path", "status_code", "duration_ms")
# session bridge / repertory client
_REPERTORY_FIELDS = ("repertory", "upstream_status", "cookie_count", "reason")

_EXTRA_FIELDS = ("event",) + _HTTP_FIELDS + _REPERTORY_FIELDS


def _is_production() -> bool:
    return os.getenv("APP_ENV", "development").lower() in {"production", "prod"}


class _JsonFormatter(logging.Formatter):
    """Serialize a record to JSON; tracebacks are dropped in production."""

    def __init__(self) -> None:
        super().__init__()
        self._production = _is_production()

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_ctx.get(),
        }
        payload.update(
            (name, getattr(record, name))
            for name in _EXTRA_FIELDS
            if getattr(record, name, None) is not None
        )

        if record.exc_info:
            exc_type, exc_val, _ = record.exc_info
            exc: dict[str, Any] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "detail": str(exc_val),
            }
            if not self._production:
                exc["traceback"] = self.formatException(record.exc_info)
            payload["exc"] = exc

        return json.dumps(payload, ensure_ascii=False, default=str)


def _has_json_handler(logger: logging.Logger) -> bool:
    return any(isinstance(h.formatter, _JsonFormatter) for h in logger.handlers)


def setup_json_logging(level: str | None = None) -> None:
    """Install the JSON handler on the root logger (idempotent).

    ``LOG_LEVEL`` is used when ``level`` is not given.
    """
    root = logging.getLogger()
    if _has_json_handler(root):
        return

    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)
