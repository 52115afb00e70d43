"""
Logging setup for the assessment API.

Development gets one readable line per record; production gets one JSON
object per record for the log pipeline. Either way each record carries the
request id of the HTTP request that produced it, when there is one.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.config import settings

# Filled in by RequestLoggingMiddleware for the lifetime of a request
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Record attributes worth keeping in JSON output when a caller passes them
_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "student_id",
    "test_id",
    "attempt_id",
    "session_id",
)

# Third-party loggers and the level they are held at
_LIBRARY_LEVELS = {
    "sqlalchemy.engine": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"


def _current_request_id(record: logging.LogRecord) -> Optional[str]:
    return request_id_context.get() or getattr(record, "request_id", None)


class RequestIdFilter(logging.Filter):
    """Stamp ``record.request_id`` so text formats can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _current_request_id(record) or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with assessment context fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = _current_request_id(record)
        if request_id and request_id != "-":
            entry["request_id"] = request_id

        entry.update(
            (name, getattr(record, name))
            for name in _EXTRA_FIELDS
            if hasattr(record, name)
        )

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging() -> None:
    """Apply the logging configuration for the current settings."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    console = {
        "class": "logging.StreamHandler",
        "stream": sys.stdout,
        "level": level,
        "filters": ["request_id"],
        "formatter": "json" if settings.ENV == "production" else "text",
    }

    loggers: Dict[str, Dict[str, Any]] = {
        "app": {"level": level, "handlers": ["console"], "propagate": False},
    }
    for name, library_level in _LIBRARY_LEVELS.items():
        if name == "uvicorn.access" and not settings.DEBUG:
            library_level = logging.INFO
        loggers[name] = {
            "level": library_level,
            "handlers": ["console"],
            "propagate": False,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": {
                "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
                "json": {"()": JSONFormatter},
            },
            "handlers": {"console": console},
            "root": {"level": level, "handlers": ["console"]},
            "loggers": loggers,
        }
    )
