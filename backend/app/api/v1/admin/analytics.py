"""
Assessment analytics admin endpoints.

Cohort statistics and live monitoring for a single assessment. Cohort
statistics cover sessions that were submitted or timed out; abandoned
sessions are excluded.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.assessment_analytics import (
    active_sessions,
    assessment_summary,
    flagged_sessions,
    question_difficulty,
    top_and_bottom_performers,
    violation_heatmap,
)
from app.core.auth import verify_admin_token
from app.core.clock import Clock, get_clock
from app.core.config import settings
from app.core.error_responses import ErrorMessages, raise_not_found
from app.core.reaper import reap_expired_sessions
from app.models import Assessment, get_db
from app.schemas.assessment_analytics import (
    ActiveSessionResponse,
    ActiveSessionsResponse,
    AssessmentAnalyticsResponse,
    AssessmentSummaryResponse,
    FlaggedSessionResponse,
    PerformerResponse,
    QuestionDifficultyResponse,
    ViolationHeatmapResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _load_assessment(db: Session, assessment_id: int) -> Assessment:
    assessment = db.get(Assessment, assessment_id)
    if assessment is None:
        raise_not_found(ErrorMessages.ASSESSMENT_NOT_FOUND)
    return assessment


def _reap_before_read(db: Session, clock: Clock, assessment_id: int) -> int:
    if not settings.REAP_ON_READ:
        return 0
    return reap_expired_sessions(db, clock, assessment_id=assessment_id)


@router.get(
    "/{assessment_id}/analytics",
    response_model=AssessmentAnalyticsResponse,
)
def get_assessment_analytics(
    assessment_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    _: bool = Depends(verify_admin_token),
):
    r"""
    Get cohort analytics for an assessment.

    Stale in-progress sessions are timed out first (when REAP_ON_READ is
    enabled) so that they are part of the cohort.

    Requires X-Admin-Token header with valid admin token.

    **Summary:**
    - Session counts by status, average and median score, pass rate
    - Score distribution in equal-width buckets

    **Question difficulty:**
    - Percent correct and mean answer latency per question, hardest first

    **Violation heatmap:**
    - 'left' events per question position, attributed through view telemetry

    **Flagged sessions:**
    - Sessions at or above the violation review threshold

    Example:
        ```
        curl "https://api.example.com/v1/admin/assessments/12/analytics" \
          -H "X-Admin-Token: your-admin-token"
        ```
    """
    _load_assessment(db, assessment_id)
    expired = _reap_before_read(db, clock, assessment_id)

    summary = assessment_summary(db, assessment_id)
    top, bottom = top_and_bottom_performers(db, assessment_id)

    logger.info(
        f"Analytics computed for assessment {assessment_id}: "
        f"{summary.scored_count} scored sessions",
        extra={"assessment_id": assessment_id},
    )
    return AssessmentAnalyticsResponse(
        assessment_id=assessment_id,
        summary=AssessmentSummaryResponse.model_validate(summary),
        question_difficulty=[
            QuestionDifficultyResponse.model_validate(row)
            for row in question_difficulty(db, assessment_id)
        ],
        violation_heatmap=ViolationHeatmapResponse.model_validate(
            violation_heatmap(db, assessment_id)
        ),
        flagged_sessions=[
            FlaggedSessionResponse.model_validate(row)
            for row in flagged_sessions(db, assessment_id)
        ],
        top_performers=[PerformerResponse.model_validate(e) for e in top],
        bottom_performers=[PerformerResponse.model_validate(e) for e in bottom],
        expired_before_read=expired,
    )


@router.get(
    "/{assessment_id}/active-sessions",
    response_model=ActiveSessionsResponse,
)
def get_active_sessions(
    assessment_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    _: bool = Depends(verify_admin_token),
):
    """
    List in-progress sessions with elapsed and remaining time.

    Requires X-Admin-Token header with valid admin token.
    """
    assessment = _load_assessment(db, assessment_id)
    expired = _reap_before_read(db, clock, assessment_id)

    return ActiveSessionsResponse(
        assessment_id=assessment_id,
        sessions=[
            ActiveSessionResponse.model_validate(row)
            for row in active_sessions(db, assessment, clock.now())
        ],
        expired_before_read=expired,
    )
