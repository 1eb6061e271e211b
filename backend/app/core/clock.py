"""
Server-side time source.

Every time-limit and cooldown computation goes through a Clock so that tests
can freeze and advance time deterministically. Client-reported timestamps are
never consulted.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Anything that can report the current instant as an aware UTC datetime."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    Manually controlled clock for tests.

    Example:
        >>> clock = FrozenClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        >>> clock.advance(minutes=31)
        >>> clock.now().minute
        31
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = ensure_timezone_aware(start or datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = ensure_timezone_aware(instant)

    def advance(self, delta: Optional[timedelta] = None, **kwargs: float) -> None:
        """Move time forward by a timedelta or timedelta keyword arguments."""
        step = delta if delta is not None else timedelta(**kwargs)
        if step < timedelta(0):
            raise ValueError("FrozenClock cannot move backwards")
        self._now = self._now + step


_system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock (overridden in tests)."""
    return _system_clock


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
