"""
Database models for the assessment session engine.

Assessments and questions mirror the content collaborator and are read-only
to the engine. Sessions, answers and violations are owned by the engine and
are never deleted by it (retained for analytics and audit).
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from .base import Base


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values (e.g. "in_progress") rather than member names."""
    return [member.value for member in enum_cls]


class SessionStatus(str, enum.Enum):
    """Assessment session status enumeration."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.IN_PROGRESS


TERMINAL_STATUSES = (
    SessionStatus.COMPLETED,
    SessionStatus.TIMED_OUT,
    SessionStatus.ABANDONED,
)

# Statuses that take part in cohort statistics (percentile, difficulty, ...)
RANKED_STATUSES = (SessionStatus.COMPLETED, SessionStatus.TIMED_OUT)


class ViolationKind(str, enum.Enum):
    """Proctoring event kinds reported by the exam client."""

    LEFT = "left"
    RETURNED = "returned"


@dataclass(frozen=True)
class CandidateIdentity:
    """
    Opaque candidate identity resolved by the identity collaborator.

    Exactly one of candidate_id (authenticated) or contact_fingerprint
    (anonymous public attempt) is set.
    """

    candidate_id: Optional[str] = None
    contact_fingerprint: Optional[str] = None

    def __post_init__(self) -> None:
        if bool(self.candidate_id) == bool(self.contact_fingerprint):
            raise ValueError(
                "CandidateIdentity requires exactly one of candidate_id "
                "or contact_fingerprint"
            )

    @property
    def key(self) -> str:
        """Stable key used to group attempts of the same candidate."""
        if self.candidate_id:
            return f"user:{self.candidate_id}"
        return f"anon:{self.contact_fingerprint}"

    @property
    def is_anonymous(self) -> bool:
        return self.contact_fingerprint is not None


class Assessment(Base):
    """Authored exam definition (rules + question pool reference)."""

    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    time_limit_minutes = Column(Integer, nullable=False)
    pass_threshold = Column(Integer, nullable=False)  # 0-100
    question_count = Column(Integer, nullable=False)
    shuffle_questions = Column(Boolean, default=True, nullable=False)
    max_attempts = Column(Integer, nullable=True)  # NULL = unlimited
    cooldown_minutes = Column(Integer, nullable=True)  # NULL = no cooldown
    access_code = Column(String(100), nullable=True)  # never sent to clients
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    allow_review = Column(Boolean, default=False, nullable=False)
    show_results = Column(Boolean, default=True, nullable=False)
    public_code = Column(String(32), unique=True, nullable=True, index=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    questions = relationship(
        "Question", back_populates="assessment", order_by="Question.position"
    )
    sessions = relationship("AssessmentSession", back_populates="assessment")

    __table_args__ = (
        CheckConstraint(
            "pass_threshold >= 0 AND pass_threshold <= 100",
            name="ck_assessments_pass_threshold_range",
        ),
        CheckConstraint("time_limit_minutes > 0", name="ck_assessments_time_limit"),
        CheckConstraint("question_count > 0", name="ck_assessments_question_count"),
    )

    @property
    def time_limit(self) -> timedelta:
        return timedelta(minutes=self.time_limit_minutes)

    @property
    def cooldown(self) -> Optional[timedelta]:
        if not self.cooldown_minutes:
            return None
        return timedelta(minutes=self.cooldown_minutes)

    @property
    def access_code_required(self) -> bool:
        return bool(self.access_code)


class Question(Base):
    """Multiple-choice question mirrored from the content collaborator."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(
        Integer,
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)  # authored order
    stem = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # list of option strings
    correct_index = Column(Integer, nullable=False)  # never exposed before grading
    explanation = Column(Text)

    assessment = relationship("Assessment", back_populates="questions")


class AssessmentSession(Base):
    """One candidate's single timed attempt at an assessment."""

    __tablename__ = "assessment_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    assessment_id = Column(
        Integer, ForeignKey("assessments.id"), nullable=False, index=True
    )
    candidate_id = Column(String(255), nullable=True)
    contact_fingerprint = Column(String(64), nullable=True)
    candidate_key = Column(String(255), nullable=False)
    status = Column(
        Enum(
            SessionStatus,
            native_enum=False,
            values_callable=_enum_values,
            length=20,
        ),
        default=SessionStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True, index=True)
    # Touched by every mutation so concurrent writers bump version_id
    last_activity_at = Column(DateTime(timezone=True), nullable=True)

    # Fixed at creation: ordered list of question ids
    question_sequence = Column(JSON, nullable=False)

    # Outcome, set once at grading time
    score = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=True)
    correct_count = Column(Integer, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    # Set only by the certificate collaborator hand-off
    certificate_url = Column(String(500), nullable=True)

    # Optimistic lock counter for per-session read-modify-write
    version_id = Column(Integer, nullable=False)

    # Relationships
    assessment = relationship("Assessment", back_populates="sessions")
    answers = relationship(
        "SessionAnswer",
        back_populates="session",
        order_by="SessionAnswer.position",
        cascade="all, delete-orphan",
    )
    violations = relationship(
        "SessionViolation",
        back_populates="session",
        order_by="(SessionViolation.occurred_at, SessionViolation.id)",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        # At most one in-progress attempt per (assessment, candidate). The
        # application checks first; this index catches concurrent starts.
        Index(
            "ix_assessment_sessions_one_active",
            "assessment_id",
            "candidate_key",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
            sqlite_where=text("status = 'in_progress'"),
        ),
        Index(
            "ix_assessment_sessions_candidate",
            "assessment_id",
            "candidate_key",
            "status",
        ),
        CheckConstraint(
            "(status = 'in_progress' AND completed_at IS NULL) OR "
            "(status != 'in_progress' AND completed_at IS NOT NULL)",
            name="ck_assessment_sessions_completed_at_terminal",
        ),
        CheckConstraint(
            "score IS NULL OR (score >= 0 AND score <= 100)",
            name="ck_assessment_sessions_score_range",
        ),
        CheckConstraint(
            "completed_at IS NULL OR completed_at >= created_at",
            name="ck_assessment_sessions_completed_after_created",
        ),
    )

    @property
    def status_enum(self) -> SessionStatus:
        return SessionStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    @property
    def violation_count(self) -> int:
        """Number of times the candidate left the exam window."""
        return sum(1 for v in self.violations if v.kind == ViolationKind.LEFT)

    def answer_for(self, question_id: int) -> Optional["SessionAnswer"]:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None


class SessionAnswer(Base):
    """Answer slot for one question of a session's fixed sequence."""

    __tablename__ = "session_answers"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        String(36),
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # No FK: the authored question may be deleted while the session lives on
    question_id = Column(Integer, nullable=False, index=True)
    position = Column(Integer, nullable=False)  # index in question_sequence
    selected_index = Column(Integer, nullable=True)  # NULL = unanswered
    is_correct = Column(Boolean, nullable=True)  # NULL until graded
    answered_at = Column(DateTime(timezone=True), nullable=True)
    viewed_at = Column(DateTime(timezone=True), nullable=True)  # first view

    session = relationship("AssessmentSession", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_session_answer"),
    )


class SessionViolation(Base):
    """Append-only proctoring event log entry."""

    __tablename__ = "session_violations"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        String(36),
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    kind = Column(
        Enum(
            ViolationKind,
            native_enum=False,
            values_callable=_enum_values,
            length=20,
        ),
        nullable=False,
    )

    session = relationship("AssessmentSession", back_populates="violations")
