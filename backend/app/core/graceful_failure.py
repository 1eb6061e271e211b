"""
Graceful failure utilities.

This module provides a reusable context manager for non-critical operations
that must not block the main execution flow. It centralizes the common
"graceful degradation" pattern of:
1. Attempting an operation
2. Logging any exception with context and reporting it to error tracking
3. Continuing execution without raising

Typical callers are the certificate hand-off after a passing submission and
analytics event tracking: a failure there must never undo a session's
terminal transition.

Usage:
    from app.core.graceful_failure import graceful_failure

    with graceful_failure("issue certificate", logger, context={"session_id": sid}):
        issue_certificate(session)

    # With custom log level (default is WARNING) and stack trace:
    with graceful_failure("track event", logger, log_level=logging.ERROR, exc_info=True):
        AnalyticsTracker.track_event(...)
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from app.core import observability


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Context manager for non-critical operations that should not block execution.

    Unlike the HTTP error builders in `app.core.error_responses`, this does NOT
    raise HTTPException, roll back the database session or stop execution.

    Args:
        operation_name: Human-readable name of the operation for logging
            (e.g., "issue certificate").
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log. Defaults to False.
        context: Optional dictionary of additional context to include in the log
            message and the error tracking event (e.g., {"session_id": "..."}).

    Yields:
        None - the context manager is used for its side effects only.
    """
    try:
        yield
    except Exception as e:
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"Failed to {operation_name} ({context_str}): {e}"
        else:
            message = f"Failed to {operation_name}: {e}"

        logger.log(log_level, message, exc_info=exc_info)

        observability.capture_error(
            e,
            context={"operation": operation_name, **(context or {})},
            level="warning",
        )
