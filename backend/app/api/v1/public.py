"""
Public share-link endpoints.

Anonymous candidates identify themselves with a contact email, which is only
stored as a fingerprint. Starting a session returns a candidate token used
for all later calls to the regular session endpoints.
"""
import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.v1.assessments import build_start_response, get_session_controller
from app.core.error_responses import (
    ErrorMessages,
    raise_for_operation,
    raise_not_found,
)
from app.core.security import contact_fingerprint, create_public_candidate_token
from app.core.session_lifecycle import SessionController
from app.models import Assessment, CandidateIdentity, get_db
from app.schemas.assessment_sessions import (
    AssessmentInfoResponse,
    PublicStartSessionRequest,
    PublicStartSessionResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_shared_assessment(db: Session, public_code: str) -> Assessment:
    assessment = (
        db.query(Assessment).filter(Assessment.public_code == public_code).first()
    )
    if assessment is None:
        logger.debug(f"Unknown public code {public_code!r}")
        raise_not_found(ErrorMessages.public_link_not_found(public_code))
    return assessment


@router.get("/{public_code}", response_model=AssessmentInfoResponse)
def get_shared_assessment(public_code: str, db: Session = Depends(get_db)):
    """
    Describe a shared assessment.

    Reports whether an access code is required but never the code itself.
    """
    return AssessmentInfoResponse.model_validate(
        _get_shared_assessment(db, public_code)
    )


@router.post(
    "/{public_code}/sessions",
    response_model=PublicStartSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_public_session(
    public_code: str,
    request: PublicStartSessionRequest,
    response: Response,
    db: Session = Depends(get_db),
    controller: SessionController = Depends(get_session_controller),
):
    """
    Start or resume a session through a public share link.

    The same eligibility rules apply as for authenticated candidates; the
    candidate is identified by the fingerprint of the contact email, so the
    same email resumes the same in-progress session.
    """
    assessment = _get_shared_assessment(db, public_code)
    fingerprint = contact_fingerprint(request.contact_email)
    candidate = CandidateIdentity(contact_fingerprint=fingerprint)

    result = controller.start(assessment.id, candidate, request.access_code)
    if not result.ok:
        raise_for_operation(result)

    outcome = result.value
    if outcome.resumed:
        response.status_code = status.HTTP_200_OK
    return PublicStartSessionResponse(
        **build_start_response(outcome, assessment, controller.clock),
        candidate_token=create_public_candidate_token(fingerprint),
    )
