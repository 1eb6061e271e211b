"""
Models package for the assessment session engine.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    Assessment,
    Question,
    AssessmentSession,
    SessionAnswer,
    SessionViolation,
    SessionStatus,
    ViolationKind,
    CandidateIdentity,
    TERMINAL_STATUSES,
    RANKED_STATUSES,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "Assessment",
    "Question",
    "AssessmentSession",
    "SessionAnswer",
    "SessionViolation",
    "SessionStatus",
    "ViolationKind",
    "CandidateIdentity",
    "TERMINAL_STATUSES",
    "RANKED_STATUSES",
]
