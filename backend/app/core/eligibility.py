"""
Eligibility gate for starting or resuming an assessment session.

The gate is a pure decision over the assessment's current rules and the
candidate's session history. It never writes; creating the session is the
lifecycle controller's job.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from app.core.clock import ensure_timezone_aware
from app.models.models import (
    Assessment,
    AssessmentSession,
    SessionStatus,
    TERMINAL_STATUSES,
)

logger = logging.getLogger(__name__)


class DenialReason(str, Enum):
    """Reasons a candidate may not start an assessment."""

    OUTSIDE_WINDOW = "OUTSIDE_WINDOW"
    BAD_ACCESS_CODE = "BAD_ACCESS_CODE"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"


@dataclass(frozen=True)
class EligibilityDecision:
    """Outcome of an eligibility check."""

    allowed: bool
    reason: Optional[DenialReason] = None
    cooldown_ends_at: Optional[datetime] = None
    # Existing in-progress session to resume instead of creating a new one
    resume_session: Optional[AssessmentSession] = None
    attempts_used: int = 0

    @classmethod
    def allow(
        cls,
        attempts_used: int = 0,
        resume_session: Optional[AssessmentSession] = None,
    ) -> "EligibilityDecision":
        return cls(
            allowed=True, attempts_used=attempts_used, resume_session=resume_session
        )

    @classmethod
    def deny(
        cls,
        reason: DenialReason,
        attempts_used: int = 0,
        cooldown_ends_at: Optional[datetime] = None,
    ) -> "EligibilityDecision":
        return cls(
            allowed=False,
            reason=reason,
            attempts_used=attempts_used,
            cooldown_ends_at=cooldown_ends_at,
        )


def access_code_matches(expected: Optional[str], provided: Optional[str]) -> bool:
    """Exact, case-sensitive comparison in constant time."""
    if not expected:
        return True
    if provided is None:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def within_window(assessment: Assessment, now: datetime) -> bool:
    """True when `now` falls inside the assessment's scheduling window (inclusive)."""
    now = ensure_timezone_aware(now)
    if assessment.start_date is not None and now < ensure_timezone_aware(
        assessment.start_date
    ):
        return False
    if assessment.end_date is not None and now > ensure_timezone_aware(
        assessment.end_date
    ):
        return False
    return True


def find_in_progress_session(
    db: Session, assessment_id: int, candidate_key: str
) -> Optional[AssessmentSession]:
    """Return the candidate's in-progress session for an assessment, if any."""
    return (
        db.query(AssessmentSession)
        .filter(
            AssessmentSession.assessment_id == assessment_id,
            AssessmentSession.candidate_key == candidate_key,
            AssessmentSession.status == SessionStatus.IN_PROGRESS,
        )
        .first()
    )


def check_eligibility(
    db: Session,
    assessment: Assessment,
    candidate_key: str,
    access_code: Optional[str],
    now: datetime,
) -> EligibilityDecision:
    """
    Decide whether a candidate may start (or resume) an assessment.

    Checks run in order and the first failure wins:
    1. scheduling window
    2. access code
    3. attempt limit (terminal attempts only)
    4. cooldown since the most recent terminal attempt
    5. an existing in-progress session is returned for resume

    Args:
        db: Database session (read-only use)
        assessment: Assessment with its current rules
        candidate_key: Opaque candidate key
        access_code: Code supplied by the candidate, if any
        now: Current server time

    Returns:
        EligibilityDecision. Denials carry a DenialReason; COOLDOWN_ACTIVE
        also carries the instant the cooldown ends.
    """
    if not within_window(assessment, now):
        logger.info(
            f"Start denied for assessment {assessment.id}: outside scheduling window",
            extra={"assessment_id": assessment.id},
        )
        return EligibilityDecision.deny(DenialReason.OUTSIDE_WINDOW)

    if not access_code_matches(assessment.access_code, access_code):
        logger.info(
            f"Start denied for assessment {assessment.id}: access code mismatch",
            extra={"assessment_id": assessment.id},
        )
        return EligibilityDecision.deny(DenialReason.BAD_ACCESS_CODE)

    terminal_sessions = (
        db.query(AssessmentSession)
        .filter(
            AssessmentSession.assessment_id == assessment.id,
            AssessmentSession.candidate_key == candidate_key,
            AssessmentSession.status.in_(TERMINAL_STATUSES),
        )
        .order_by(AssessmentSession.completed_at.desc())
        .all()
    )
    attempts_used = len(terminal_sessions)

    if assessment.max_attempts is not None and attempts_used >= assessment.max_attempts:
        logger.info(
            f"Start denied for assessment {assessment.id}: "
            f"{attempts_used}/{assessment.max_attempts} attempts used",
            extra={"assessment_id": assessment.id},
        )
        return EligibilityDecision.deny(
            DenialReason.ATTEMPTS_EXHAUSTED, attempts_used=attempts_used
        )

    cooldown = assessment.cooldown
    if cooldown is not None and terminal_sessions:
        last_completed_at = ensure_timezone_aware(terminal_sessions[0].completed_at)
        cooldown_ends_at = last_completed_at + cooldown
        if cooldown_ends_at > ensure_timezone_aware(now):
            logger.info(
                f"Start denied for assessment {assessment.id}: "
                f"cooldown active until {cooldown_ends_at.isoformat()}",
                extra={"assessment_id": assessment.id},
            )
            return EligibilityDecision.deny(
                DenialReason.COOLDOWN_ACTIVE,
                attempts_used=attempts_used,
                cooldown_ends_at=cooldown_ends_at,
            )

    existing = find_in_progress_session(db, assessment.id, candidate_key)
    return EligibilityDecision.allow(
        attempts_used=attempts_used, resume_session=existing
    )
