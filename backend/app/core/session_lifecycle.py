"""
Session lifecycle controller.

The state machine for one timed attempt:

    (none) --start--> in_progress --submit--------> completed
                          |      --expiry-------> timed_out
                          |      --abandon------> abandoned
                          +-- record_answer / record_violation / record_view

Every handler loads the session row for update, applies the expiry rule from
`app.core.session_state.next_state` and persists a resulting timed_out
transition (graded) before honoring or rejecting the request. Gate denials,
state conflicts and integrity violations are returned as values in a
SessionOperationResult; nothing is raised across this boundary for them.
"""
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Generic, List, Optional, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.analytics import AnalyticsTracker, EventType
from app.core.clock import Clock, ensure_timezone_aware
from app.core.config import settings
from app.core.eligibility import (
    EligibilityDecision,
    check_eligibility,
    find_in_progress_session,
)
from app.core.graceful_failure import graceful_failure
from app.core.grading import GradeResult, grade_session, percent_half_up
from app.core.observability import capture_anomaly
from app.core.question_bank import (
    build_question_sequence,
    get_questions_by_id,
    load_assessment_questions,
    option_index_valid,
)
from app.core.session_state import next_state, remaining_seconds, session_deadline
from app.models.models import (
    Assessment,
    AssessmentSession,
    CandidateIdentity,
    Question,
    SessionAnswer,
    SessionStatus,
    SessionViolation,
    ViolationKind,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Attempts per answer, violation or view write before SESSION_CONFLICT
MAX_WRITE_ATTEMPTS = 3

_FINISH_EVENTS = {
    SessionStatus.COMPLETED: EventType.SESSION_COMPLETED,
    SessionStatus.TIMED_OUT: EventType.SESSION_TIMED_OUT,
    SessionStatus.ABANDONED: EventType.SESSION_ABANDONED,
}


class SessionError(str, Enum):
    """State-conflict and integrity outcomes of session operations."""

    NOT_FOUND = "NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    ALREADY_TERMINAL = "ALREADY_TERMINAL"
    SESSION_IN_PROGRESS = "SESSION_IN_PROGRESS"
    NOT_OWNER = "NOT_OWNER"
    QUESTION_NOT_IN_SESSION = "QUESTION_NOT_IN_SESSION"
    INVALID_OPTION = "INVALID_OPTION"
    NO_QUESTIONS = "NO_QUESTIONS"
    SESSION_CONFLICT = "SESSION_CONFLICT"
    CERTIFICATE_NOT_ALLOWED = "CERTIFICATE_NOT_ALLOWED"


# Errors that indicate possible tampering rather than a stale client
INTEGRITY_ERRORS = frozenset(
    {
        SessionError.NOT_OWNER,
        SessionError.QUESTION_NOT_IN_SESSION,
        SessionError.INVALID_OPTION,
    }
)


@dataclass(frozen=True)
class SessionOperationResult(Generic[T]):
    """Value-or-error result of a controller operation."""

    value: Optional[T] = None
    error: Optional[SessionError] = None
    denial: Optional[EligibilityDecision] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.denial is None

    @classmethod
    def success(cls, value: T) -> "SessionOperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SessionError) -> "SessionOperationResult[T]":
        return cls(error=error)

    @classmethod
    def denied(cls, decision: EligibilityDecision) -> "SessionOperationResult[T]":
        return cls(denial=decision)


class CertificateIssuer(Protocol):
    def issue(self, session: AssessmentSession) -> Optional[str]:
        ...


@dataclass(frozen=True)
class StartOutcome:
    session: AssessmentSession
    resumed: bool
    questions: List[Question]
    attempts_used: int


@dataclass(frozen=True)
class AnswerOutcome:
    question_id: int
    selected_index: int
    answered_at: datetime
    answered_count: int


@dataclass(frozen=True)
class ViolationOutcome:
    kind: ViolationKind
    occurred_at: datetime
    violation_count: int
    flagged_for_review: bool


@dataclass(frozen=True)
class ViewOutcome:
    question_id: int
    viewed_at: datetime
    first_view: bool


@dataclass(frozen=True)
class SubmitOutcome:
    session: AssessmentSession
    grade: GradeResult
    certificate_url: Optional[str] = None


@dataclass(frozen=True)
class SessionState:
    """Authoritative snapshot of a session for clients."""

    session: AssessmentSession
    status: SessionStatus
    remaining_seconds: int
    deadline: datetime
    answers: Dict[int, Optional[int]]
    violation_count: int
    flagged_for_review: bool
    answered_count: int
    total_questions: int
    percent_complete: int
    questions: List[Question] = field(default_factory=list)


def is_flagged_for_review(violation_count: int) -> bool:
    """Read-time classification; never changes session state."""
    return violation_count >= settings.VIOLATION_REVIEW_THRESHOLD


def finalize_session(
    db: Session,
    session: AssessmentSession,
    assessment: Assessment,
    status: SessionStatus,
    completed_at: datetime,
) -> GradeResult:
    """
    Move an in-progress session into a terminal status and grade it.

    `completed_at` is written here and only here, exactly once per session.
    The caller commits.
    """
    if session.is_terminal:
        raise ValueError(f"Session {session.id} is already {session.status_enum.value}")
    if not status.is_terminal:
        raise ValueError(f"{status.value} is not a terminal status")

    session.status = status
    session.completed_at = completed_at
    session.last_activity_at = completed_at
    return grade_session(db, session, assessment, graded_at=completed_at)


def track_session_finished(session: AssessmentSession) -> None:
    """
    Emit the terminal-transition event for a graded session.

    Call only after the transition has been committed, so a write that loses
    the version race never produces an event.
    """
    with graceful_failure(
        "track session finish", logger, context={"session_id": session.id}
    ):
        duration = int(
            (
                ensure_timezone_aware(session.completed_at)
                - ensure_timezone_aware(session.created_at)
            ).total_seconds()
        )
        AnalyticsTracker.track_session_finished(
            _FINISH_EVENTS[session.status_enum],
            candidate_key=session.candidate_key,
            session_id=session.id,
            assessment_id=session.assessment_id,
            score=session.score,
            passed=session.passed,
            duration_seconds=duration,
        )


def apply_expiry(
    db: Session,
    session: AssessmentSession,
    assessment: Assessment,
    now: datetime,
) -> bool:
    """
    Apply the expiry rule; returns True if the session was just timed out.

    The caller commits, then calls track_session_finished.
    """
    transition = next_state(
        session.status_enum, session.created_at, assessment.time_limit, now
    )
    if not transition.expired:
        return False

    logger.info(
        f"Session {session.id} expired at {transition.completed_at.isoformat()}",
        extra={"session_id": session.id, "assessment_id": session.assessment_id},
    )
    finalize_session(
        db, session, assessment, SessionStatus.TIMED_OUT, transition.completed_at
    )
    return True


class SessionController:
    """
    Lifecycle operations for assessment sessions.

    Args:
        db: Database session (one per request)
        clock: Server time source
        rng: Random source for question shuffling
        certificate_issuer: Optional collaborator invoked after a passing submit
    """

    def __init__(
        self,
        db: Session,
        clock: Clock,
        rng: Optional[random.Random] = None,
        certificate_issuer: Optional[CertificateIssuer] = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.rng = rng or random.Random()
        self.certificate_issuer = certificate_issuer

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_for_update(self, session_id: str) -> Optional[AssessmentSession]:
        return (
            self.db.query(AssessmentSession)
            .filter(AssessmentSession.id == session_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def _commit(self, session_id: Optional[str] = None) -> bool:
        """Commit, returning False if a concurrent writer won the version race."""
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.info(
                f"Concurrent modification of session {session_id}; request aborted",
                extra={"session_id": session_id},
            )
            return False
        return True

    def _retry_on_conflict(
        self,
        session_id: str,
        attempt: Callable[[], SessionOperationResult[T]],
    ) -> SessionOperationResult[T]:
        """
        Run a per-session write, starting over when it loses the version race.

        Each attempt reloads the row, so ExpiryCheck and validation see the
        concurrent writer's changes. SESSION_CONFLICT is returned only once
        MAX_WRITE_ATTEMPTS attempts have all lost.
        """
        for attempt_number in range(1, MAX_WRITE_ATTEMPTS + 1):
            result = attempt()
            if result.error is not SessionError.SESSION_CONFLICT:
                return result
            logger.debug(
                f"Write to session {session_id} lost attempt {attempt_number} "
                f"of {MAX_WRITE_ATTEMPTS}",
                extra={"session_id": session_id},
            )
        logger.warning(
            f"Session {session_id} still contended after {MAX_WRITE_ATTEMPTS} attempts",
            extra={"session_id": session_id},
        )
        return result

    def _integrity_violation(
        self,
        error: SessionError,
        session: AssessmentSession,
        candidate: Optional[CandidateIdentity],
        detail: str,
    ) -> SessionOperationResult:
        """Reject a request that looks like tampering; nothing is mutated."""
        candidate_key = candidate.key if candidate else None
        logger.warning(
            f"Integrity violation ({error.value}) on session {session.id}, "
            f"possible tampering: {detail}",
            extra={"session_id": session.id, "assessment_id": session.assessment_id},
        )
        capture_anomaly(
            "Session integrity violation",
            context={
                "session_id": session.id,
                "assessment_id": session.assessment_id,
                "error": error.value,
                "detail": detail,
            },
            tags={"anomaly": "integrity", "error": error.value},
        )
        AnalyticsTracker.track_integrity_violation(candidate_key, session.id, error.value)
        self.db.rollback()
        return SessionOperationResult.failure(error)

    def _open_session(
        self, session_id: str, candidate: Optional[CandidateIdentity]
    ):
        """
        Load a session, run ExpiryCheck and verify ownership.

        Returns a (session, assessment, just_expired, failure) tuple; failure is
        a SessionOperationResult when the request must stop.
        """
        now = self.clock.now()
        session = self._load_for_update(session_id)
        if session is None:
            logger.debug(f"Session {session_id} not found")
            return None, None, False, SessionOperationResult.failure(
                SessionError.NOT_FOUND
            )

        assessment = session.assessment
        just_expired = apply_expiry(self.db, session, assessment, now)
        if just_expired and not self._commit(session.id):
            return None, None, False, SessionOperationResult.failure(
                SessionError.SESSION_CONFLICT
            )
        if just_expired:
            track_session_finished(session)

        if candidate is not None and session.candidate_key != candidate.key:
            return None, None, just_expired, self._integrity_violation(
                SessionError.NOT_OWNER,
                session,
                candidate,
                "candidate does not own this session",
            )

        return session, assessment, just_expired, None

    def _require_in_progress(
        self, session: AssessmentSession
    ) -> Optional[SessionOperationResult]:
        """Mutations after expiry are SESSION_EXPIRED; other terminals ALREADY_TERMINAL."""
        status = session.status_enum
        if status is SessionStatus.IN_PROGRESS:
            return None
        logger.debug(
            f"Rejected mutation of session {session.id} in status {status.value}",
            extra={"session_id": session.id},
        )
        self.db.rollback()
        if status is SessionStatus.TIMED_OUT:
            return SessionOperationResult.failure(SessionError.SESSION_EXPIRED)
        return SessionOperationResult.failure(SessionError.ALREADY_TERMINAL)

    def _presentable_questions(self, session: AssessmentSession) -> List[Question]:
        """Questions of the fixed sequence that still exist, in sequence order."""
        sequence = list(session.question_sequence or [])
        questions = get_questions_by_id(self.db, sequence)
        return [questions[qid] for qid in sequence if qid in questions]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(
        self,
        assessment_id: int,
        candidate: CandidateIdentity,
        access_code: Optional[str] = None,
    ) -> SessionOperationResult[StartOutcome]:
        """
        Start a new session or resume the candidate's in-progress one.

        An in-progress session that has already run out of time is expired
        (and graded) first, so it counts as an attempt for the gate.
        """
        now = self.clock.now()
        assessment = self.db.get(Assessment, assessment_id)
        if assessment is None:
            return SessionOperationResult.failure(SessionError.NOT_FOUND)

        stale = find_in_progress_session(self.db, assessment.id, candidate.key)
        if stale is not None and apply_expiry(self.db, stale, assessment, now):
            if not self._commit(stale.id):
                return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)
            track_session_finished(stale)

        decision = check_eligibility(
            self.db, assessment, candidate.key, access_code, now
        )
        if not decision.allowed:
            AnalyticsTracker.track_start_denied(
                candidate.key, assessment.id, decision.reason.value
            )
            return SessionOperationResult.denied(decision)

        if decision.resume_session is not None:
            session = decision.resume_session
            AnalyticsTracker.track_session_resumed(
                candidate.key, session.id, assessment.id
            )
            return SessionOperationResult.success(
                StartOutcome(
                    session=session,
                    resumed=True,
                    questions=self._presentable_questions(session),
                    attempts_used=decision.attempts_used,
                )
            )

        pool = load_assessment_questions(self.db, assessment.id)
        sequence = build_question_sequence(
            pool, assessment.question_count, assessment.shuffle_questions, self.rng
        )
        if not sequence:
            logger.warning(
                f"Assessment {assessment.id} has no questions; start rejected",
                extra={"assessment_id": assessment.id},
            )
            return SessionOperationResult.failure(SessionError.NO_QUESTIONS)

        session = AssessmentSession(
            assessment_id=assessment.id,
            candidate_id=candidate.candidate_id,
            contact_fingerprint=candidate.contact_fingerprint,
            candidate_key=candidate.key,
            status=SessionStatus.IN_PROGRESS,
            created_at=now,
            last_activity_at=now,
            question_sequence=sequence,
        )
        for position, question_id in enumerate(sequence):
            session.answers.append(
                SessionAnswer(question_id=question_id, position=position)
            )
        self.db.add(session)

        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent start for the same candidate won the unique index
            self.db.rollback()
            logger.info(
                f"Concurrent start for assessment {assessment.id} lost the race",
                extra={"assessment_id": assessment.id},
            )
            return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)

        self.db.refresh(session)
        AnalyticsTracker.track_session_started(
            candidate.key, session.id, assessment.id, len(sequence)
        )
        pool_by_id = {q.id: q for q in pool}
        return SessionOperationResult.success(
            StartOutcome(
                session=session,
                resumed=False,
                questions=[pool_by_id[qid] for qid in sequence],
                attempts_used=decision.attempts_used,
            )
        )

    def record_answer(
        self,
        session_id: str,
        candidate: CandidateIdentity,
        question_id: int,
        selected_index: int,
    ) -> SessionOperationResult[AnswerOutcome]:
        """
        Upsert the selection for one question. Correctness is not computed here.

        Answers to different questions sent at the same moment are all kept:
        a write that loses the version race is redone on the fresh row.
        """
        return self._retry_on_conflict(
            session_id,
            lambda: self._record_answer_once(
                session_id, candidate, question_id, selected_index
            ),
        )

    def _record_answer_once(
        self,
        session_id: str,
        candidate: CandidateIdentity,
        question_id: int,
        selected_index: int,
    ) -> SessionOperationResult[AnswerOutcome]:
        session, _, _, failure = self._open_session(session_id, candidate)
        if failure is not None:
            return failure

        failure = self._require_in_progress(session)
        if failure is not None:
            return failure

        answer = session.answer_for(question_id)
        if question_id not in (session.question_sequence or []) or answer is None:
            return self._integrity_violation(
                SessionError.QUESTION_NOT_IN_SESSION,
                session,
                candidate,
                f"question {question_id} is not part of the session",
            )

        question = get_questions_by_id(self.db, [question_id]).get(question_id)
        if selected_index < 0 or (
            question is not None and not option_index_valid(question, selected_index)
        ):
            return self._integrity_violation(
                SessionError.INVALID_OPTION,
                session,
                candidate,
                f"option {selected_index} out of range for question {question_id}",
            )

        now = self.clock.now()
        answer.selected_index = selected_index
        answer.answered_at = now
        session.last_activity_at = now

        if not self._commit(session.id):
            return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)

        answered_count = sum(1 for a in session.answers if a.selected_index is not None)
        return SessionOperationResult.success(
            AnswerOutcome(
                question_id=question_id,
                selected_index=selected_index,
                answered_at=now,
                answered_count=answered_count,
            )
        )

    def record_violation(
        self,
        session_id: str,
        candidate: CandidateIdentity,
        kind: ViolationKind,
    ) -> SessionOperationResult[ViolationOutcome]:
        """Append a proctoring event. There is no cap on the log."""
        return self._retry_on_conflict(
            session_id, lambda: self._record_violation_once(session_id, candidate, kind)
        )

    def _record_violation_once(
        self,
        session_id: str,
        candidate: CandidateIdentity,
        kind: ViolationKind,
    ) -> SessionOperationResult[ViolationOutcome]:
        session, _, _, failure = self._open_session(session_id, candidate)
        if failure is not None:
            return failure

        failure = self._require_in_progress(session)
        if failure is not None:
            return failure

        now = self.clock.now()
        kind = ViolationKind(kind)
        session.violations.append(SessionViolation(occurred_at=now, kind=kind))
        session.last_activity_at = now

        if not self._commit(session.id):
            return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)

        violation_count = session.violation_count
        AnalyticsTracker.track_violation(
            session.candidate_key, session.id, kind.value, violation_count
        )
        return SessionOperationResult.success(
            ViolationOutcome(
                kind=kind,
                occurred_at=now,
                violation_count=violation_count,
                flagged_for_review=is_flagged_for_review(violation_count),
            )
        )

    def record_question_view(
        self,
        session_id: str,
        candidate: CandidateIdentity,
        question_id: int,
    ) -> SessionOperationResult[ViewOutcome]:
        """Record when a question was first shown; later views are ignored."""
        return self._retry_on_conflict(
            session_id,
            lambda: self._record_question_view_once(session_id, candidate, question_id),
        )

    def _record_question_view_once(
        self,
        session_id: str,
        candidate: CandidateIdentity,
        question_id: int,
    ) -> SessionOperationResult[ViewOutcome]:
        session, _, _, failure = self._open_session(session_id, candidate)
        if failure is not None:
            return failure

        failure = self._require_in_progress(session)
        if failure is not None:
            return failure

        answer = session.answer_for(question_id)
        if answer is None:
            return self._integrity_violation(
                SessionError.QUESTION_NOT_IN_SESSION,
                session,
                candidate,
                f"view reported for question {question_id} outside the session",
            )

        if answer.viewed_at is not None:
            first_viewed_at = ensure_timezone_aware(answer.viewed_at)
            self.db.rollback()
            return SessionOperationResult.success(
                ViewOutcome(
                    question_id=question_id,
                    viewed_at=first_viewed_at,
                    first_view=False,
                )
            )

        now = self.clock.now()
        answer.viewed_at = now
        session.last_activity_at = now
        if not self._commit(session.id):
            return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)

        return SessionOperationResult.success(
            ViewOutcome(question_id=question_id, viewed_at=now, first_view=True)
        )

    def submit(
        self, session_id: str, candidate: CandidateIdentity
    ) -> SessionOperationResult[SubmitOutcome]:
        """Complete the session and grade it synchronously."""
        session, assessment, _, failure = self._open_session(session_id, candidate)
        if failure is not None:
            return failure

        if session.is_terminal:
            logger.debug(
                f"Submit of terminal session {session.id} ({session.status_enum.value})",
                extra={"session_id": session.id},
            )
            self.db.rollback()
            return SessionOperationResult.failure(SessionError.ALREADY_TERMINAL)

        now = self.clock.now()
        grade = finalize_session(
            self.db, session, assessment, SessionStatus.COMPLETED, now
        )
        if not self._commit(session.id):
            return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)
        track_session_finished(session)

        certificate_url = self._hand_off_certificate(session)
        return SessionOperationResult.success(
            SubmitOutcome(session=session, grade=grade, certificate_url=certificate_url)
        )

    def abandon(
        self, session_id: str, reason: Optional[str] = None
    ) -> SessionOperationResult[GradeResult]:
        """
        Administratively end an in-progress session (e.g., account revoked).

        The session is graded like any other terminal session but is excluded
        from cohort statistics.
        """
        session, assessment, _, failure = self._open_session(session_id, None)
        if failure is not None:
            return failure

        if session.is_terminal:
            self.db.rollback()
            return SessionOperationResult.failure(SessionError.ALREADY_TERMINAL)

        grade = finalize_session(
            self.db, session, assessment, SessionStatus.ABANDONED, self.clock.now()
        )
        if not self._commit(session.id):
            return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)
        track_session_finished(session)

        logger.info(
            f"Session {session.id} abandoned: {reason or 'no reason given'}",
            extra={"session_id": session.id, "assessment_id": session.assessment_id},
        )
        return SessionOperationResult.success(grade)

    def get_state(
        self, session_id: str, candidate: Optional[CandidateIdentity]
    ) -> SessionOperationResult[SessionState]:
        """
        Current authoritative state. ExpiryCheck runs (and persists) first, so
        remaining_seconds is never negative for a session still in progress.
        """
        session, assessment, _, failure = self._open_session(session_id, candidate)
        if failure is not None:
            return failure
        # Release the row lock taken by the load
        self.db.commit()

        now = self.clock.now()
        status = session.status_enum
        answers = {a.question_id: a.selected_index for a in session.answers}
        violation_count = session.violation_count
        # Deleted questions stay in the score denominator but not in progress
        existing = get_questions_by_id(self.db, session.question_sequence or [])
        answered_existing = sum(
            1 for qid in existing if answers.get(qid) is not None
        )
        return SessionOperationResult.success(
            SessionState(
                session=session,
                status=status,
                remaining_seconds=remaining_seconds(
                    status, session.created_at, assessment.time_limit, now
                ),
                deadline=session_deadline(session.created_at, assessment.time_limit),
                answers=answers,
                violation_count=violation_count,
                flagged_for_review=is_flagged_for_review(violation_count),
                answered_count=sum(1 for v in answers.values() if v is not None),
                total_questions=len(session.question_sequence or []),
                percent_complete=(
                    percent_half_up(answered_existing, len(existing))
                    if existing
                    else 0
                ),
                questions=(
                    self._presentable_questions(session)
                    if status is SessionStatus.IN_PROGRESS
                    else []
                ),
            )
        )

    def get_terminal_session(
        self, session_id: str, candidate: Optional[CandidateIdentity]
    ) -> SessionOperationResult[AssessmentSession]:
        """Load a finished session for results display."""
        session, _, _, failure = self._open_session(session_id, candidate)
        if failure is not None:
            return failure
        self.db.commit()

        if not session.is_terminal:
            return SessionOperationResult.failure(SessionError.SESSION_IN_PROGRESS)
        return SessionOperationResult.success(session)

    def attach_certificate(
        self, session_id: str, certificate_url: str
    ) -> SessionOperationResult[AssessmentSession]:
        """Store a certificate URL supplied by the certificate collaborator."""
        session, _, _, failure = self._open_session(session_id, None)
        if failure is not None:
            return failure

        if not session.is_terminal or not session.passed:
            self.db.rollback()
            logger.info(
                f"Certificate rejected for session {session.id}: not a passing "
                "terminal session",
                extra={"session_id": session.id},
            )
            return SessionOperationResult.failure(SessionError.CERTIFICATE_NOT_ALLOWED)

        session.certificate_url = certificate_url
        if not self._commit(session.id):
            return SessionOperationResult.failure(SessionError.SESSION_CONFLICT)
        return SessionOperationResult.success(session)

    def _hand_off_certificate(self, session: AssessmentSession) -> Optional[str]:
        """Ask the certificate collaborator for a URL; failures never undo the submit."""
        if not session.passed or self.certificate_issuer is None:
            return None

        certificate_url = None
        with graceful_failure(
            "issue certificate",
            logger,
            exc_info=True,
            context={"session_id": session.id},
        ):
            certificate_url = self.certificate_issuer.issue(session)

        if not certificate_url:
            return None
        session.certificate_url = certificate_url
        if not self._commit(session.id):
            return None
        return certificate_url
