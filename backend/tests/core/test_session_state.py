"""
Tests for the pure expiry rule and remaining-time computation.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.session_state import next_state, remaining_seconds, session_deadline
from app.models.models import SessionStatus

CREATED = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)
LIMIT = timedelta(minutes=30)


class TestNextState:
    """Tests for next_state."""

    def test_in_progress_before_deadline_is_unchanged(self):
        transition = next_state(
            SessionStatus.IN_PROGRESS, CREATED, LIMIT, CREATED + timedelta(minutes=29)
        )
        assert transition.status is SessionStatus.IN_PROGRESS
        assert transition.expired is False
        assert transition.completed_at is None

    def test_expires_exactly_at_deadline(self):
        now = CREATED + LIMIT
        transition = next_state(SessionStatus.IN_PROGRESS, CREATED, LIMIT, now)
        assert transition.status is SessionStatus.TIMED_OUT
        assert transition.completed_at == now

    def test_expires_after_deadline_with_evaluation_instant(self):
        """completed_at is the instant the expiry was observed."""
        now = CREATED + timedelta(minutes=31)
        transition = next_state(SessionStatus.IN_PROGRESS, CREATED, LIMIT, now)
        assert transition.status is SessionStatus.TIMED_OUT
        assert transition.completed_at == now

    @pytest.mark.parametrize(
        "status",
        [SessionStatus.COMPLETED, SessionStatus.TIMED_OUT, SessionStatus.ABANDONED],
    )
    def test_terminal_statuses_never_change(self, status):
        transition = next_state(status, CREATED, LIMIT, CREATED + timedelta(days=1))
        assert transition.status is status
        assert transition.expired is False

    def test_accepts_string_status_and_naive_created_at(self):
        """Values as read back from SQLite."""
        transition = next_state(
            "in_progress",
            CREATED.replace(tzinfo=None),
            LIMIT,
            CREATED + timedelta(hours=1),
        )
        assert transition.status is SessionStatus.TIMED_OUT

    def test_shortened_limit_applies_to_running_session(self):
        """Rules are re-read at evaluation time."""
        now = CREATED + timedelta(minutes=20)
        transition = next_state(
            SessionStatus.IN_PROGRESS, CREATED, timedelta(minutes=15), now
        )
        assert transition.status is SessionStatus.TIMED_OUT


class TestRemainingSeconds:
    """Tests for remaining_seconds and session_deadline."""

    def test_deadline_is_created_plus_limit(self):
        assert session_deadline(CREATED, LIMIT) == CREATED + LIMIT

    def test_full_time_at_start(self):
        assert remaining_seconds(SessionStatus.IN_PROGRESS, CREATED, LIMIT, CREATED) == 1800

    def test_counts_down(self):
        now = CREATED + timedelta(minutes=10, seconds=30)
        assert remaining_seconds(SessionStatus.IN_PROGRESS, CREATED, LIMIT, now) == 1170

    def test_never_negative(self):
        now = CREATED + timedelta(hours=2)
        assert remaining_seconds(SessionStatus.IN_PROGRESS, CREATED, LIMIT, now) == 0

    def test_zero_for_terminal_sessions(self):
        assert remaining_seconds(SessionStatus.COMPLETED, CREATED, LIMIT, CREATED) == 0
