"""
Security utilities for candidate JWT tokens and contact fingerprints.

Authenticated candidates arrive with an access token issued by the identity
service carrying a `candidate_id` claim. Anonymous candidates using a public
share link receive a token from this service carrying a
`contact_fingerprint` claim instead.
"""
from datetime import datetime, timedelta, timezone
import hashlib
import uuid

from typing import Optional, Dict, Any
from jose import JWTError, jwt
from app.core.config import settings

ACCESS_TOKEN_TYPE = "access"


def contact_fingerprint(contact_email: str) -> str:
    """
    Derive the anonymous candidate identity from a contact email.

    The email is normalised (trimmed, lower-cased) and hashed so that the
    session store never holds contact details.

    Args:
        contact_email: Email supplied on the public start form

    Returns:
        Hex SHA-256 digest (64 characters)
    """
    normalised = contact_email.strip().lower()
    return hashlib.sha256(normalised.encode("utf-8")).hexdigest()


def _create_token(
    data: Dict[str, Any],
    token_type: str,
    expires_delta: Optional[timedelta],
    default_expires: timedelta,
) -> str:
    """
    Internal helper to create a JWT token.

    Args:
        data: Dictionary of claims to encode in the token
        token_type: Type of token ("access")
        expires_delta: Optional custom expiration time delta
        default_expires: Default expiration delta if expires_delta is None

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or default_expires)
    jti = str(uuid.uuid4())
    to_encode.update({"exp": expire, "iat": now, "type": token_type, "jti": jti})
    return jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def create_candidate_token(
    candidate_id: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create an access token for an authenticated candidate.

    Normally issued by the identity service sharing JWT_SECRET_KEY; exposed
    here for tooling and tests.
    """
    return _create_token(
        data={"candidate_id": str(candidate_id)},
        token_type=ACCESS_TOKEN_TYPE,
        expires_delta=expires_delta,
        default_expires=timedelta(minutes=settings.PUBLIC_TOKEN_EXPIRE_MINUTES),
    )


def create_public_candidate_token(
    fingerprint: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create an access token for an anonymous public-link candidate.

    Args:
        fingerprint: Contact fingerprint from contact_fingerprint()
        expires_delta: Optional custom expiration time delta

    Returns:
        Encoded JWT token string
    """
    return _create_token(
        data={"contact_fingerprint": fingerprint},
        token_type=ACCESS_TOKEN_TYPE,
        expires_delta=expires_delta,
        default_expires=timedelta(minutes=settings.PUBLIC_TOKEN_EXPIRE_MINUTES),
    )


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT token.

    Args:
        token: JWT token string to decode

    Returns:
        Decoded token payload if valid, None if invalid
    """
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None


def verify_token_type(payload: Dict[str, Any], expected_type: str) -> bool:
    """
    Verify that a token payload has the expected type.

    Args:
        payload: Decoded token payload
        expected_type: Expected token type

    Returns:
        True if token type matches expected type, False otherwise
    """
    token_type = payload.get("type")
    return token_type == expected_type
