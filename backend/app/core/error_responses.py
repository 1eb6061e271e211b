"""
Standardized error response messages and builders.

This module provides consistent error messages and HTTPException builders
for the entire API, and the single mapping from session engine outcomes
(eligibility denials and SessionError values) to HTTP responses.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Never include internal anomaly detail; candidates only see denial reasons
  or state conflicts

Engine outcomes carry a machine-readable code. Their responses have the shape
``{"detail": <message>, "code": <CODE>}`` (plus ``cooldown_ends_at`` for
COOLDOWN_ACTIVE).

Usage:
    from app.core.error_responses import ErrorMessages, raise_not_found

    if assessment is None:
        raise_not_found(ErrorMessages.ASSESSMENT_NOT_FOUND)

    result = controller.submit(session_id, candidate)
    if not result.ok:
        raise_for_operation(result)
"""

from typing import Any, Dict, NoReturn, Optional

from fastapi import HTTPException, status

from app.core.eligibility import DenialReason, EligibilityDecision
from app.core.session_lifecycle import SessionError, SessionOperationResult


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    INVALID_TOKEN = "Invalid authentication token."
    INVALID_TOKEN_TYPE = "Invalid token type."
    INVALID_TOKEN_PAYLOAD = "Invalid token payload."

    # ==========================================================================
    # Authorization Errors (403)
    # ==========================================================================
    SESSION_ACCESS_DENIED = "Not authorized to access this assessment session."
    ADMIN_TOKEN_INVALID = "Invalid admin token."

    # Eligibility denials
    OUTSIDE_WINDOW = "This assessment is not currently open."
    BAD_ACCESS_CODE = "The access code is incorrect."
    ATTEMPTS_EXHAUSTED = "You have used all allowed attempts for this assessment."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    ASSESSMENT_NOT_FOUND = "Assessment not found."
    SESSION_NOT_FOUND = "Assessment session not found."

    # ==========================================================================
    # Conflict Errors (409)
    # ==========================================================================
    SESSION_EXPIRED = "The time limit for this session has expired."
    SESSION_ALREADY_TERMINAL = "This session has already ended."
    SESSION_IN_PROGRESS = "Results are available once the session has ended."
    SESSION_CONFLICT = (
        "The session was modified by another request. "
        "Please refresh and try again."
    )
    CERTIFICATE_NOT_ALLOWED = (
        "Certificates can only be attached to passed, finished sessions."
    )

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    QUESTION_NOT_IN_SESSION = "This question is not part of the session."
    INVALID_OPTION = "The selected option does not exist for this question."

    # ==========================================================================
    # Unprocessable (422)
    # ==========================================================================
    NO_QUESTIONS = "This assessment has no questions available."

    # ==========================================================================
    # Configuration Errors (500)
    # ==========================================================================
    ADMIN_TOKEN_NOT_CONFIGURED = "Admin token not configured on server."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def cooldown_active(cooldown_ends_at: str) -> str:
        """Message for a retake attempted before the cooldown has elapsed."""
        return f"You can retake this assessment after {cooldown_ends_at}."

    @staticmethod
    def public_link_not_found(public_code: str) -> str:
        return f"No assessment is shared under link '{public_code}'."


_DENIAL_MESSAGES = {
    DenialReason.OUTSIDE_WINDOW: ErrorMessages.OUTSIDE_WINDOW,
    DenialReason.BAD_ACCESS_CODE: ErrorMessages.BAD_ACCESS_CODE,
    DenialReason.ATTEMPTS_EXHAUSTED: ErrorMessages.ATTEMPTS_EXHAUSTED,
}

# SessionError -> (HTTP status, message)
_SESSION_ERROR_RESPONSES = {
    SessionError.NOT_FOUND: (
        status.HTTP_404_NOT_FOUND,
        ErrorMessages.SESSION_NOT_FOUND,
    ),
    SessionError.SESSION_EXPIRED: (
        status.HTTP_409_CONFLICT,
        ErrorMessages.SESSION_EXPIRED,
    ),
    SessionError.ALREADY_TERMINAL: (
        status.HTTP_409_CONFLICT,
        ErrorMessages.SESSION_ALREADY_TERMINAL,
    ),
    SessionError.SESSION_IN_PROGRESS: (
        status.HTTP_409_CONFLICT,
        ErrorMessages.SESSION_IN_PROGRESS,
    ),
    SessionError.SESSION_CONFLICT: (
        status.HTTP_409_CONFLICT,
        ErrorMessages.SESSION_CONFLICT,
    ),
    SessionError.CERTIFICATE_NOT_ALLOWED: (
        status.HTTP_409_CONFLICT,
        ErrorMessages.CERTIFICATE_NOT_ALLOWED,
    ),
    SessionError.NOT_OWNER: (
        status.HTTP_403_FORBIDDEN,
        ErrorMessages.SESSION_ACCESS_DENIED,
    ),
    SessionError.QUESTION_NOT_IN_SESSION: (
        status.HTTP_400_BAD_REQUEST,
        ErrorMessages.QUESTION_NOT_IN_SESSION,
    ),
    SessionError.INVALID_OPTION: (
        status.HTTP_400_BAD_REQUEST,
        ErrorMessages.INVALID_OPTION,
    ),
    SessionError.NO_QUESTIONS: (
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorMessages.NO_QUESTIONS,
    ),
}


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )


def raise_forbidden(detail: str) -> NoReturn:
    """Raise a 403 Forbidden exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 403 Forbidden
    """
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=detail,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_conflict(detail: str) -> NoReturn:
    """Raise a 409 Conflict exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 409 Conflict
    """
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    )


def raise_not_configured(detail: str) -> NoReturn:
    """Raise a 500 error for missing server configuration.

    Args:
        detail: Error message describing what's not configured

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


def raise_with_code(
    status_code: int,
    detail: str,
    code: str,
    extra: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """Raise an HTTPException whose body carries a machine-readable code.

    The application's HTTP exception handler returns dict details as the
    response body unchanged.

    Raises:
        HTTPException: with detail {"detail": ..., "code": ..., **extra}
    """
    body: Dict[str, Any] = {"detail": detail, "code": code}
    if extra:
        body.update(extra)
    raise HTTPException(status_code=status_code, detail=body)


def raise_denied(decision: EligibilityDecision) -> NoReturn:
    """Raise a 403 for an eligibility denial, surfacing its reason code.

    Raises:
        HTTPException: 403 Forbidden
    """
    reason = decision.reason
    if reason is DenialReason.COOLDOWN_ACTIVE:
        ends_at = decision.cooldown_ends_at.isoformat()
        raise_with_code(
            status.HTTP_403_FORBIDDEN,
            ErrorMessages.cooldown_active(ends_at),
            reason.value,
            {"cooldown_ends_at": ends_at},
        )
    raise_with_code(status.HTTP_403_FORBIDDEN, _DENIAL_MESSAGES[reason], reason.value)


def raise_for_session_error(error: SessionError) -> NoReturn:
    """Raise the HTTP response for a session state conflict or integrity error.

    Raises:
        HTTPException: 400, 403, 404, 409 or 422 depending on the error
    """
    status_code, detail = _SESSION_ERROR_RESPONSES[error]
    raise_with_code(status_code, detail, error.value)


def raise_for_operation(result: SessionOperationResult) -> NoReturn:
    """Raise the HTTP response for a failed controller operation.

    Raises:
        HTTPException: mapped from the denial or the SessionError
    """
    if result.denial is not None:
        raise_denied(result.denial)
    raise_for_session_error(result.error)
