"""
Session management admin endpoints.

Stale-session reaping, administrative termination and certificate attachment.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.assessments import get_session_controller
from app.core.auth import verify_admin_token
from app.core.error_responses import (
    ErrorMessages,
    raise_for_operation,
    raise_not_found,
)
from app.core.reaper import reap_expired_sessions
from app.core.session_lifecycle import SessionController
from app.models import Assessment, SessionStatus, get_db
from app.schemas.assessment_analytics import (
    AbandonSessionRequest,
    AbandonSessionResponse,
    AttachCertificateRequest,
    AttachCertificateResponse,
    ReapResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/{assessment_id}/reap", response_model=ReapResponse)
def reap_assessment_sessions(
    assessment_id: int,
    db: Session = Depends(get_db),
    controller: SessionController = Depends(get_session_controller),
    _: bool = Depends(verify_admin_token),
):
    """
    Time out every in-progress session of an assessment past its deadline.

    Safe to call repeatedly; sessions already finished are left alone.

    Requires X-Admin-Token header with valid admin token.
    """
    if db.get(Assessment, assessment_id) is None:
        raise_not_found(ErrorMessages.ASSESSMENT_NOT_FOUND)

    expired = reap_expired_sessions(db, controller.clock, assessment_id=assessment_id)
    return ReapResponse(expired=expired)


@router.post(
    "/sessions/{session_id}/abandon", response_model=AbandonSessionResponse
)
def abandon_session(
    session_id: str,
    request: Optional[AbandonSessionRequest] = None,
    controller: SessionController = Depends(get_session_controller),
    _: bool = Depends(verify_admin_token),
):
    """
    End an in-progress session administratively (e.g., revoked account).

    The session is graded but excluded from cohort statistics.

    Requires X-Admin-Token header with valid admin token.
    """
    reason = request.reason if request is not None else None
    result = controller.abandon(session_id, reason)
    if not result.ok:
        raise_for_operation(result)

    grade = result.value
    return AbandonSessionResponse(
        session_id=session_id,
        status=SessionStatus.ABANDONED,
        score=grade.score,
        passed=grade.passed,
    )


@router.put(
    "/sessions/{session_id}/certificate", response_model=AttachCertificateResponse
)
def attach_certificate(
    session_id: str,
    request: AttachCertificateRequest,
    controller: SessionController = Depends(get_session_controller),
    _: bool = Depends(verify_admin_token),
):
    """
    Attach a certificate URL to a passed, finished session.

    Requires X-Admin-Token header with valid admin token.
    """
    result = controller.attach_certificate(session_id, request.certificate_url)
    if not result.ok:
        raise_for_operation(result)

    session = result.value
    return AttachCertificateResponse(
        session_id=session.id, certificate_url=session.certificate_url
    )
