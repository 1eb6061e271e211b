"""
Logging configuration for the session engine.

Production emits one JSON object per line; development uses a readable line
format with the session context appended. Both carry the request id set by
RequestLoggingMiddleware.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.config import settings

# Set per request by RequestLoggingMiddleware
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# `extra=` keys copied into structured output when present
STRUCTURED_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
    "session_id",
    "assessment_id",
    "event",
    "error_id",
)


class SessionContextFilter(logging.Filter):
    """
    Attach a compact ``context`` string to every record.

    Renders request id, assessment and session as ``[req=.. assessment=..
    session=..]`` for the development format; empty when none are known.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        parts = []
        request_id = request_id_context.get()
        if request_id:
            parts.append(f"req={request_id}")
        assessment_id = getattr(record, "assessment_id", None)
        if assessment_id is not None:
            parts.append(f"assessment={assessment_id}")
        session_id = getattr(record, "session_id", None)
        if session_id is not None:
            parts.append(f"session={session_id}")
        record.context = f" [{' '.join(parts)}]" if parts else ""
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for production log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """
    Configure application logging from settings.

    - LOG_LEVEL applies to the root and ``app`` loggers
    - JSON output when ENV is production, readable lines otherwise
    - SQLAlchemy engine, httpx and sentry_sdk chatter is limited to warnings
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    is_production = settings.ENV == "production"

    def console_only(level: int) -> Dict[str, Any]:
        return {"level": level, "handlers": ["console"], "propagate": False}

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "session_context": {"()": SessionContextFilter},
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s%(context)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if is_production else "default",
                "filters": ["session_context"],
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "app": console_only(log_level),
            "uvicorn.access": console_only(
                logging.WARNING if settings.DEBUG else logging.INFO
            ),
            "sqlalchemy.engine": console_only(logging.WARNING),
            # Certificate issuer calls log every request at INFO
            "httpx": console_only(logging.WARNING),
            "sentry_sdk": console_only(logging.WARNING),
        },
    }

    logging.config.dictConfig(logging_config)
