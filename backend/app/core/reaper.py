"""
Stale session reaper.

Expires in-progress sessions whose time limit has elapsed but that were never
touched again by their candidate. Invoked before aggregate reads and by the
admin endpoint; correctness only requires that it runs before stale data is
read, not that it runs on a schedule. Safe to run concurrently and repeatedly.
"""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.analytics import AnalyticsTracker
from app.core.clock import Clock
from app.core.session_lifecycle import apply_expiry, track_session_finished
from app.core.session_state import session_deadline
from app.models.models import Assessment, AssessmentSession, SessionStatus

logger = logging.getLogger(__name__)


def reap_expired_sessions(
    db: Session, clock: Clock, assessment_id: Optional[int] = None
) -> int:
    """
    Time out and grade every in-progress session past its deadline.

    Each session is committed on its own so one failure does not hold back
    the rest; a session concurrently finished by another request is skipped.

    Args:
        db: Database session
        clock: Server time source
        assessment_id: Restrict the scan to one assessment (all when None)

    Returns:
        Number of sessions transitioned to timed_out by this call
    """
    now = clock.now()
    query = (
        db.query(
            AssessmentSession.id,
            AssessmentSession.created_at,
            Assessment.time_limit_minutes,
        )
        .join(Assessment, Assessment.id == AssessmentSession.assessment_id)
        .filter(AssessmentSession.status == SessionStatus.IN_PROGRESS)
    )
    if assessment_id is not None:
        query = query.filter(AssessmentSession.assessment_id == assessment_id)
    candidate_ids = [
        row.id
        for row in query.all()
        if session_deadline(row.created_at, timedelta(minutes=row.time_limit_minutes))
        <= now
    ]

    expired = 0
    for session_id in candidate_ids:
        session = (
            db.query(AssessmentSession)
            .filter(
                AssessmentSession.id == session_id,
                AssessmentSession.status == SessionStatus.IN_PROGRESS,
            )
            .with_for_update(skip_locked=True)
            .populate_existing()
            .first()
        )
        if session is None:
            # Finished or locked by another request in the meantime
            continue

        if not apply_expiry(db, session, session.assessment, now):
            db.rollback()
            continue

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.info(
                f"Session {session_id} changed concurrently; skipped by reaper",
                extra={"session_id": session_id},
            )
            continue
        track_session_finished(session)
        expired += 1

    if expired:
        logger.info(
            f"Reaper expired {expired} session(s)"
            + (f" for assessment {assessment_id}" if assessment_id is not None else ""),
            extra={"assessment_id": assessment_id},
        )
        AnalyticsTracker.track_sessions_reaped(expired, assessment_id)
    return expired
