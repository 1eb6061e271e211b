"""
FastAPI authentication dependencies.

Both authenticated and anonymous public candidates present a bearer token;
either resolves to an opaque CandidateIdentity that the session engine
treats uniformly.
"""
import logging
import secrets

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings
from app.core.error_responses import (
    ErrorMessages,
    raise_not_configured,
    raise_unauthorized,
)
from app.core.security import ACCESS_TOKEN_TYPE, decode_token, verify_token_type
from app.models.models import CandidateIdentity

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer()


def _decode_candidate_token(token: str) -> CandidateIdentity:
    """
    Decode and validate a candidate token.

    Args:
        token: The JWT token string

    Returns:
        CandidateIdentity built from the candidate_id or contact_fingerprint claim

    Raises:
        HTTPException: 401 if token is invalid, wrong type, or carries no identity
    """
    payload = decode_token(token)
    if payload is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    if not verify_token_type(payload, ACCESS_TOKEN_TYPE):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_TYPE)

    candidate_id = payload.get("candidate_id")
    fingerprint = payload.get("contact_fingerprint")
    if bool(candidate_id) == bool(fingerprint):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_PAYLOAD)

    return CandidateIdentity(
        candidate_id=str(candidate_id) if candidate_id else None,
        contact_fingerprint=fingerprint or None,
    )


async def get_current_candidate(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CandidateIdentity:
    """
    Resolve the calling candidate from the bearer token.

    The candidate key is kept on request.state for error tracking.

    Raises:
        HTTPException: 401 if the token is invalid
    """
    candidate = _decode_candidate_token(credentials.credentials)
    request.state.candidate_key = candidate.key
    return candidate


async def verify_admin_token(x_admin_token: str = Header(...)) -> bool:
    """
    Verify admin token from the X-Admin-Token header.

    Uses constant-time comparison to prevent timing attacks.

    Returns:
        bool: True if token is valid

    Raises:
        HTTPException: 500 if no token is configured, 401 if invalid
    """
    if not settings.ADMIN_TOKEN:
        raise_not_configured(ErrorMessages.ADMIN_TOKEN_NOT_CONFIGURED)

    if not secrets.compare_digest(
        x_admin_token.encode("utf-8"), settings.ADMIN_TOKEN.encode("utf-8")
    ):
        logger.warning("Rejected admin request with invalid X-Admin-Token")
        raise_unauthorized(
            ErrorMessages.ADMIN_TOKEN_INVALID, include_www_authenticate=False
        )

    return True
