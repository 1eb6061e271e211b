"""Certificate hand-off to the external certificate issuer.

After a session ends in a passing terminal state, the engine asks the issuer
for a certificate URL and stores it on the session. Rendering and delivery
belong to the issuer. Failures are logged and return None so that a
submission is never rolled back because certificates are unavailable.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.models.models import AssessmentSession

logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_STATUS_OK = 200
HTTP_STATUS_CREATED = 201


class CertificateService:
    """Requests certificates for passing sessions from the issuer API.

    Attributes:
        base_url: Base URL of the certificate issuer (empty disables issuance)
        timeout: HTTP request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize CertificateService.

        Args:
            base_url: Base URL of the issuer (e.g., "https://certs.example.com")
            timeout: HTTP request timeout in seconds (default: 5.0)
            transport: Optional httpx transport, used to stub the issuer in tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _build_payload(self, session: AssessmentSession) -> Dict[str, Any]:
        return {
            "session_id": session.id,
            "assessment_id": session.assessment_id,
            "candidate_key": session.candidate_key,
            "score": session.score,
            "completed_at": (
                session.completed_at.isoformat() if session.completed_at else None
            ),
        }

    def issue(self, session: AssessmentSession) -> Optional[str]:
        """Request a certificate for a passing session.

        Args:
            session: Terminal session with passed=True

        Returns:
            The certificate URL, or None if issuance is disabled or failed
        """
        if not self.enabled:
            logger.debug("Certificate issuance disabled (CERTIFICATE_SERVICE_URL empty)")
            return None

        if not session.passed:
            logger.debug(f"Session {session.id} did not pass; no certificate requested")
            return None

        url = f"{self.base_url}/certificates"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=self._build_payload(session))
        except httpx.TimeoutException as e:
            logger.error(
                f"Timeout requesting certificate for session {session.id}: {e}",
                extra={"session_id": session.id},
            )
            return None
        except httpx.HTTPError as e:
            logger.error(
                f"HTTP error requesting certificate for session {session.id}: {e}",
                extra={"session_id": session.id},
            )
            return None

        if response.status_code not in (HTTP_STATUS_OK, HTTP_STATUS_CREATED):
            logger.error(
                f"Certificate issuer rejected session {session.id}: "
                f"HTTP {response.status_code} - {response.text}",
                extra={"session_id": session.id},
            )
            return None

        certificate_url = response.json().get("certificate_url")
        if not certificate_url:
            logger.error(
                f"Certificate issuer returned no URL for session {session.id}",
                extra={"session_id": session.id},
            )
            return None

        logger.info(
            f"Certificate issued for session {session.id}",
            extra={"session_id": session.id},
        )
        return certificate_url


def get_certificate_service() -> CertificateService:
    """FastAPI dependency returning the configured certificate service."""
    return CertificateService(
        base_url=settings.CERTIFICATE_SERVICE_URL,
        timeout=settings.CERTIFICATE_SERVICE_TIMEOUT,
    )
