"""
Pure session state function.

`next_state` is evaluated at the start of every session handler and by the
reaper. It has no persistence or clock dependencies of its own, so the whole
time-based part of the state machine can be tested with plain values.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.core.clock import ensure_timezone_aware
from app.models.models import SessionStatus


@dataclass(frozen=True)
class StateTransition:
    """Result of evaluating a session against the current instant."""

    status: SessionStatus
    # Set only when this evaluation moved the session into timed_out
    completed_at: Optional[datetime] = None

    @property
    def expired(self) -> bool:
        return self.completed_at is not None


def session_deadline(created_at: datetime, time_limit: timedelta) -> datetime:
    """Instant at which an in-progress session stops accepting mutations."""
    return ensure_timezone_aware(created_at) + time_limit


def next_state(
    status: SessionStatus,
    created_at: datetime,
    time_limit: timedelta,
    now: datetime,
) -> StateTransition:
    """
    Apply the expiry rule to a session.

    Terminal sessions are returned unchanged. An in-progress session whose
    deadline is at or before `now` becomes timed_out with completed_at = now.

    Args:
        status: Current persisted status
        created_at: Authoritative session start
        time_limit: Assessment time limit as currently configured
        now: Current server time

    Returns:
        StateTransition describing the resulting status
    """
    status = SessionStatus(status)
    if status.is_terminal:
        return StateTransition(status=status)

    now = ensure_timezone_aware(now)
    if now >= session_deadline(created_at, time_limit):
        return StateTransition(status=SessionStatus.TIMED_OUT, completed_at=now)
    return StateTransition(status=SessionStatus.IN_PROGRESS)


def remaining_seconds(
    status: SessionStatus,
    created_at: datetime,
    time_limit: timedelta,
    now: datetime,
) -> int:
    """Whole seconds left before expiry; 0 for terminal or expired sessions."""
    if SessionStatus(status).is_terminal:
        return 0
    remaining = session_deadline(created_at, time_limit) - ensure_timezone_aware(now)
    return max(0, int(remaining.total_seconds()))
