"""
Error tracking via Sentry.

Integrity violations (possible tampering) and grading anomalies are logged
locally and, when SENTRY_DSN is configured, forwarded to Sentry with their
session context. Every function here is a no-op while Sentry is disabled.

Usage:
    from app.core.observability import capture_anomaly

    capture_anomaly(
        "Question missing at grading time",
        context={"session_id": session.id, "question_id": qid},
        tags={"anomaly": "grading"},
    )
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from app.core.config import settings

logger = logging.getLogger(__name__)

_initialized = False


def _serialize_context(context: dict[str, Any]) -> dict[str, Any]:
    """Convert datetimes and enums to JSON-friendly values."""
    serialized: dict[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, datetime):
            serialized[key] = value.isoformat()
        elif isinstance(value, Enum):
            serialized[key] = value.value
        elif isinstance(value, (str, int, float, bool)) or value is None:
            serialized[key] = value
        else:
            serialized[key] = repr(value)
    return serialized


def init_sentry() -> bool:
    """Initialize the Sentry SDK with FastAPI/Starlette integrations.

    Returns:
        True if Sentry was initialized, False if skipped (no DSN) or failed.

    Note:
        Does not raise exceptions - failures are logged and return False.
    """
    global _initialized

    if not settings.SENTRY_DSN:
        logger.debug("Sentry initialization skipped (SENTRY_DSN not configured)")
        return False

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENV,
            release=settings.APP_VERSION,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                LoggingIntegration(
                    level=None,  # Don't capture breadcrumbs from logs
                    event_level=None,  # Don't send log events
                ),
                FastApiIntegration(transaction_style="endpoint"),
                StarletteIntegration(transaction_style="endpoint"),
            ],
            send_default_pii=False,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
        return False

    _initialized = True
    logger.info(
        f"Sentry initialized for environment '{settings.ENV}' "
        f"with {settings.SENTRY_TRACES_SAMPLE_RATE * 100:.0f}% trace sampling"
    )
    return True


def is_enabled() -> bool:
    return _initialized


def capture_error(
    exception: BaseException,
    *,
    context: Optional[dict[str, Any]] = None,
    level: str = "error",
) -> Optional[str]:
    """Capture an exception with additional context.

    Returns:
        Event ID if captured, None if Sentry is disabled.
    """
    if not _initialized:
        return None

    with sentry_sdk.new_scope() as scope:
        if context:
            scope.set_context("additional", _serialize_context(context))
        scope.level = level
        return sentry_sdk.capture_exception(exception)


def capture_anomaly(
    message: str,
    *,
    context: Optional[dict[str, Any]] = None,
    tags: Optional[dict[str, str]] = None,
    level: str = "warning",
) -> Optional[str]:
    """Report a non-exception anomaly (tampering attempt, grading defect).

    Args:
        message: Short description used for grouping in Sentry.
        context: Session/assessment identifiers and other details.
        tags: Tags for categorization and filtering in Sentry.
        level: Severity level. Defaults to "warning".

    Returns:
        Event ID if captured, None if Sentry is disabled.
    """
    if not _initialized:
        return None

    with sentry_sdk.new_scope() as scope:
        if context:
            scope.set_context("additional", _serialize_context(context))
        if tags:
            for key, value in tags.items():
                scope.set_tag(key, value)
        scope.level = level
        return sentry_sdk.capture_message(message, level=level)


def flush(timeout: float = 2.0) -> None:
    """Send pending events before shutdown."""
    if _initialized:
        sentry_sdk.flush(timeout=timeout)
