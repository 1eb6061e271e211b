"""
Pytest configuration and shared fixtures for testing.
"""
import os

# Settings are read at import time; provide test values before importing app
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import random  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import Any, Callable, Dict, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.core.clock import FrozenClock, get_clock  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.security import create_candidate_token  # noqa: E402
from app.core.session_lifecycle import SessionController  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Assessment,
    Base,
    CandidateIdentity,
    Question,
    get_db,
)

START = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests.

    Skips logging reconfiguration and Sentry initialization.
    """
    yield


# Neutralize the production lifespan on the singleton app.
app.router.lifespan_context = _test_lifespan


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    File-backed SQLite engine per test, so that separate sessions behave
    like separate connections (needed for version conflict tests).
    """
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """
    Create a fresh database session for each test.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    """Frozen server clock starting at a fixed Monday morning."""
    return FrozenClock(START)


@pytest.fixture
def controller(db_session, clock):
    """SessionController with a seeded shuffler and no certificate issuer."""
    return SessionController(db_session, clock, rng=random.Random(7))


@pytest.fixture(scope="function")
def client(session_factory, clock):
    """
    Create a test client with database and clock dependency overrides.

    Each request gets its own session from the test engine, like production.
    """

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_assessment(db_session) -> Callable[..., Assessment]:
    """
    Factory creating an assessment with `pool_size` questions.

    Question i has options ["A", "B", "C", "D"] and correct_index i % 4.
    """

    def _make(pool_size: int = 4, **overrides: Any) -> Assessment:
        fields: Dict[str, Any] = dict(
            title="Python Fundamentals",
            description="Timed multiple-choice assessment",
            time_limit_minutes=30,
            pass_threshold=70,
            question_count=pool_size,
            shuffle_questions=False,
            max_attempts=None,
            cooldown_minutes=None,
            access_code=None,
            allow_review=False,
            show_results=True,
        )
        fields.update(overrides)
        assessment = Assessment(**fields)
        db_session.add(assessment)
        db_session.flush()
        for i in range(pool_size):
            db_session.add(
                Question(
                    assessment_id=assessment.id,
                    position=i,
                    stem=f"Question {i + 1}",
                    options=["A", "B", "C", "D"],
                    correct_index=i % 4,
                    explanation=f"Option {i % 4} is correct.",
                )
            )
        db_session.commit()
        db_session.refresh(assessment)
        return assessment

    return _make


@pytest.fixture
def assessment(make_assessment):
    """Default assessment: 4 questions, 30 minutes, pass at 70."""
    return make_assessment()


@pytest.fixture
def candidate():
    return CandidateIdentity(candidate_id="cand-1")


@pytest.fixture
def other_candidate():
    return CandidateIdentity(candidate_id="cand-2")


def correct_index_for(db_session, question_id: int) -> int:
    return db_session.get(Question, question_id).correct_index


def answer_all(
    controller: SessionController,
    db_session,
    session_id: str,
    candidate: CandidateIdentity,
    correct: List[bool],
) -> None:
    """Answer the session's questions in order, correctly where requested."""
    session_sequence = controller.get_state(session_id, candidate).value.session
    for question_id, right in zip(session_sequence.question_sequence, correct):
        index = correct_index_for(db_session, question_id)
        selected = index if right else (index + 1) % 4
        result = controller.record_answer(session_id, candidate, question_id, selected)
        assert result.ok, result.error


def auth_headers_for(candidate_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_candidate_token(candidate_id)}"}


@pytest.fixture
def auth_headers():
    """
    Create authentication headers for the default candidate.
    """
    return auth_headers_for("cand-1")


@pytest.fixture
def admin_headers():
    """
    Create headers with valid admin token for admin endpoints.
    """
    return {"X-Admin-Token": settings.ADMIN_TOKEN}
