"""
Assessment session endpoints.

Authenticated candidates and anonymous public-link candidates both reach the
session endpoints with a bearer token; the engine sees only the opaque
candidate key. All timestamps come from the server clock.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.core.assessment_analytics import session_standing
from app.core.auth import get_current_candidate
from app.core.clock import Clock, get_clock
from app.core.config import settings
from app.core.error_responses import (
    ErrorMessages,
    raise_for_operation,
    raise_not_found,
)
from app.core.question_bank import get_questions_by_id
from app.core.reaper import reap_expired_sessions
from app.core.session_lifecycle import SessionController, StartOutcome
from app.core.session_state import remaining_seconds
from app.models import Assessment, AssessmentSession, CandidateIdentity, get_db
from app.schemas.assessment_sessions import (
    AssessmentInfoResponse,
    AssessmentSessionResponse,
    RecordAnswerRequest,
    RecordAnswerResponse,
    RecordViewRequest,
    RecordViewResponse,
    RecordViolationRequest,
    RecordViolationResponse,
    ReviewItemResponse,
    SessionQuestionResponse,
    SessionResultsResponse,
    SessionStandingResponse,
    SessionStateResponse,
    StartSessionRequest,
    StartSessionResponse,
    SubmitSessionResponse,
)
from app.services.certificate_service import (
    CertificateService,
    get_certificate_service,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_session_controller(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    certificates: CertificateService = Depends(get_certificate_service),
) -> SessionController:
    """Build a per-request SessionController."""
    return SessionController(
        db,
        clock,
        certificate_issuer=certificates if certificates.enabled else None,
    )


def build_start_response(
    outcome: StartOutcome, assessment: Assessment, clock: Clock
) -> dict:
    """Shared payload of the authenticated and public start endpoints."""
    session = outcome.session
    return dict(
        session=AssessmentSessionResponse.model_validate(session),
        resumed=outcome.resumed,
        questions=[SessionQuestionResponse.model_validate(q) for q in outcome.questions],
        total_questions=len(session.question_sequence or []),
        remaining_seconds=remaining_seconds(
            session.status_enum, session.created_at, assessment.time_limit, clock.now()
        ),
        attempts_used=outcome.attempts_used,
    )


def _build_review(db: Session, session: AssessmentSession) -> List[ReviewItemResponse]:
    questions = get_questions_by_id(db, [a.question_id for a in session.answers])
    review = []
    for answer in session.answers:
        question = questions.get(answer.question_id)
        review.append(
            ReviewItemResponse(
                question_id=answer.question_id,
                position=answer.position,
                stem=question.stem if question is not None else None,
                options=list(question.options) if question is not None else None,
                selected_index=answer.selected_index,
                correct_index=question.correct_index if question is not None else None,
                is_correct=bool(answer.is_correct),
                explanation=question.explanation if question is not None else None,
            )
        )
    return review


# =============================================================================
# Session endpoints
# =============================================================================


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
def get_session_state(
    session_id: str,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    controller: SessionController = Depends(get_session_controller),
):
    """
    Get the authoritative state of a session.

    A session whose time limit has passed is timed out (and graded) before
    the state is returned, so clients never see a negative remaining time.
    """
    result = controller.get_state(session_id, candidate)
    if not result.ok:
        raise_for_operation(result)

    state = result.value
    return SessionStateResponse(
        session=AssessmentSessionResponse.model_validate(state.session),
        remaining_seconds=state.remaining_seconds,
        deadline=state.deadline,
        answers=state.answers,
        answered_count=state.answered_count,
        total_questions=state.total_questions,
        percent_complete=state.percent_complete,
        violation_count=state.violation_count,
        flagged_for_review=state.flagged_for_review,
        questions=(
            [SessionQuestionResponse.model_validate(q) for q in state.questions]
            if state.questions
            else None
        ),
    )


@router.put("/sessions/{session_id}/answers", response_model=RecordAnswerResponse)
def record_answer(
    session_id: str,
    request: RecordAnswerRequest,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    controller: SessionController = Depends(get_session_controller),
):
    """
    Record or replace the answer to one question.

    Correctness is not computed until the session ends.
    """
    result = controller.record_answer(
        session_id, candidate, request.question_id, request.selected_index
    )
    if not result.ok:
        raise_for_operation(result)

    outcome = result.value
    return RecordAnswerResponse(
        question_id=outcome.question_id,
        selected_index=outcome.selected_index,
        answered_at=outcome.answered_at,
        answered_count=outcome.answered_count,
    )


@router.post(
    "/sessions/{session_id}/violations", response_model=RecordViolationResponse
)
def record_violation(
    session_id: str,
    request: RecordViolationRequest,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    controller: SessionController = Depends(get_session_controller),
):
    """Record that the candidate left or returned to the exam window."""
    result = controller.record_violation(session_id, candidate, request.kind)
    if not result.ok:
        raise_for_operation(result)

    outcome = result.value
    return RecordViolationResponse(
        kind=outcome.kind,
        occurred_at=outcome.occurred_at,
        violation_count=outcome.violation_count,
        flagged_for_review=outcome.flagged_for_review,
    )


@router.post("/sessions/{session_id}/views", response_model=RecordViewResponse)
def record_question_view(
    session_id: str,
    request: RecordViewRequest,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    controller: SessionController = Depends(get_session_controller),
):
    result = controller.record_question_view(session_id, candidate, request.question_id)
    if not result.ok:
        raise_for_operation(result)

    outcome = result.value
    return RecordViewResponse(
        question_id=outcome.question_id,
        viewed_at=outcome.viewed_at,
        first_view=outcome.first_view,
    )


@router.post("/sessions/{session_id}/submit", response_model=SubmitSessionResponse)
def submit_session(
    session_id: str,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    controller: SessionController = Depends(get_session_controller),
):
    """
    Submit a session for grading.

    Unanswered questions count as incorrect. Submitting after the time limit
    returns 409 and the session is recorded as timed out instead.
    """
    result = controller.submit(session_id, candidate)
    if not result.ok:
        raise_for_operation(result)

    outcome = result.value
    return SubmitSessionResponse(
        session=AssessmentSessionResponse.model_validate(outcome.session),
        score=outcome.grade.score,
        passed=outcome.grade.passed,
        correct_count=outcome.grade.correct_count,
        total_questions=outcome.grade.total_questions,
        certificate_url=outcome.certificate_url,
    )


@router.get("/sessions/{session_id}/results", response_model=SessionResultsResponse)
def get_session_results(
    session_id: str,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    controller: SessionController = Depends(get_session_controller),
    db: Session = Depends(get_db),
):
    """
    Get the results of a finished session.

    Score and pass/fail are always returned. Cohort standing is included only
    when the assessment shows results, and the per-question review only when
    it allows review.
    """
    result = controller.get_terminal_session(session_id, candidate)
    if not result.ok:
        raise_for_operation(result)

    session = result.value
    assessment = session.assessment

    standing = None
    if assessment.show_results:
        if settings.REAP_ON_READ:
            reap_expired_sessions(db, controller.clock, assessment_id=assessment.id)
        computed = session_standing(db, session)
        if computed is not None:
            standing = SessionStandingResponse(
                percentile=computed.percentile,
                rank=computed.rank,
                cohort_size=computed.cohort_size,
            )

    return SessionResultsResponse(
        session=AssessmentSessionResponse.model_validate(session),
        score=session.score,
        passed=bool(session.passed),
        correct_count=session.correct_count or 0,
        total_questions=len(session.question_sequence or []),
        violation_count=session.violation_count,
        certificate_url=session.certificate_url,
        standing=standing,
        review=_build_review(db, session) if assessment.allow_review else None,
    )


# =============================================================================
# Assessment endpoints
# =============================================================================


@router.get("/{assessment_id}", response_model=AssessmentInfoResponse)
def get_assessment(
    assessment_id: int,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    db: Session = Depends(get_db),
):
    """Public-safe description of an assessment; the access code is never sent."""
    assessment = db.get(Assessment, assessment_id)
    if assessment is None:
        raise_not_found(ErrorMessages.ASSESSMENT_NOT_FOUND)
    return AssessmentInfoResponse.model_validate(assessment)


@router.post(
    "/{assessment_id}/sessions",
    response_model=StartSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_session(
    assessment_id: int,
    response: Response,
    request: Optional[StartSessionRequest] = None,
    candidate: CandidateIdentity = Depends(get_current_candidate),
    controller: SessionController = Depends(get_session_controller),
):
    """
    Start a new session, or resume the candidate's in-progress one.

    Returns 201 for a new session and 200 when an existing session is
    resumed. Eligibility denials return 403 with a machine-readable code
    (OUTSIDE_WINDOW, BAD_ACCESS_CODE, ATTEMPTS_EXHAUSTED, COOLDOWN_ACTIVE).
    """
    access_code = request.access_code if request is not None else None
    result = controller.start(assessment_id, candidate, access_code)
    if not result.ok:
        raise_for_operation(result)

    outcome = result.value
    if outcome.resumed:
        response.status_code = status.HTTP_200_OK
    return StartSessionResponse(
        **build_start_response(outcome, outcome.session.assessment, controller.clock)
    )
