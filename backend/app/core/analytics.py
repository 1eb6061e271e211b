"""
Analytics and event tracking for assessment session activity.

Events are emitted as structured log records; downstream collectors pick them
up from the log stream. Candidate identities are logged only as their opaque
candidate key, never as contact details.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from app.core.config import settings

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Analytics event types."""

    # Session lifecycle events
    SESSION_STARTED = "session.started"
    SESSION_RESUMED = "session.resumed"
    SESSION_COMPLETED = "session.completed"
    SESSION_TIMED_OUT = "session.timed_out"
    SESSION_ABANDONED = "session.abandoned"

    # Eligibility events
    START_DENIED = "eligibility.denied"

    # Proctoring events
    VIOLATION_RECORDED = "proctoring.violation"

    # Maintenance events
    SESSIONS_REAPED = "maintenance.sessions_reaped"

    # Security events
    INTEGRITY_VIOLATION = "security.integrity_violation"

    # API events
    API_ERROR = "api.error"


class AnalyticsTracker:
    """
    Analytics event tracker for logging and monitoring session activity.
    """

    @staticmethod
    def track_event(
        event_type: EventType,
        candidate_key: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Track an analytics event.

        Args:
            event_type: Type of event being tracked
            candidate_key: Optional opaque candidate key associated with the event
            properties: Optional dictionary of event properties

        Example:
            AnalyticsTracker.track_event(
                EventType.SESSION_COMPLETED,
                candidate_key="user:42",
                properties={"score": 80, "passed": True}
            )
        """
        event_data = {
            "event": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "candidate_key": candidate_key,
            "properties": properties or {},
            "environment": settings.ENV,
        }

        logger.info(
            f"Analytics Event: {event_type.value}",
            extra={
                "event": event_type.value,
                "event_data": event_data,
                "session_id": (properties or {}).get("session_id"),
                "assessment_id": (properties or {}).get("assessment_id"),
            },
        )

    @staticmethod
    def track_session_started(
        candidate_key: str, session_id: str, assessment_id: int, question_count: int
    ) -> None:
        """Track a new session."""
        AnalyticsTracker.track_event(
            EventType.SESSION_STARTED,
            candidate_key=candidate_key,
            properties={
                "session_id": session_id,
                "assessment_id": assessment_id,
                "question_count": question_count,
            },
        )

    @staticmethod
    def track_session_resumed(
        candidate_key: str, session_id: str, assessment_id: int
    ) -> None:
        """Track a start request that returned the existing in-progress session."""
        AnalyticsTracker.track_event(
            EventType.SESSION_RESUMED,
            candidate_key=candidate_key,
            properties={"session_id": session_id, "assessment_id": assessment_id},
        )

    @staticmethod
    def track_session_finished(
        event_type: EventType,
        candidate_key: str,
        session_id: str,
        assessment_id: int,
        score: Optional[int],
        passed: Optional[bool],
        duration_seconds: Optional[int] = None,
    ) -> None:
        """Track a terminal transition (completed, timed out or abandoned)."""
        AnalyticsTracker.track_event(
            event_type,
            candidate_key=candidate_key,
            properties={
                "session_id": session_id,
                "assessment_id": assessment_id,
                "score": score,
                "passed": passed,
                "duration_seconds": duration_seconds,
            },
        )

    @staticmethod
    def track_start_denied(candidate_key: str, assessment_id: int, reason: str) -> None:
        """Track an eligibility denial."""
        AnalyticsTracker.track_event(
            EventType.START_DENIED,
            candidate_key=candidate_key,
            properties={"assessment_id": assessment_id, "reason": reason},
        )

    @staticmethod
    def track_violation(
        candidate_key: str, session_id: str, kind: str, violation_count: int
    ) -> None:
        """Track a proctoring event."""
        AnalyticsTracker.track_event(
            EventType.VIOLATION_RECORDED,
            candidate_key=candidate_key,
            properties={
                "session_id": session_id,
                "kind": kind,
                "violation_count": violation_count,
            },
        )

    @staticmethod
    def track_sessions_reaped(count: int, assessment_id: Optional[int]) -> None:
        """Track a reaper pass that expired at least one session."""
        AnalyticsTracker.track_event(
            EventType.SESSIONS_REAPED,
            properties={"assessment_id": assessment_id, "expired_count": count},
        )

    @staticmethod
    def track_integrity_violation(
        candidate_key: Optional[str], session_id: str, reason: str
    ) -> None:
        """Track a rejected mutation that looks like tampering."""
        AnalyticsTracker.track_event(
            EventType.INTEGRITY_VIOLATION,
            candidate_key=candidate_key,
            properties={"session_id": session_id, "reason": reason},
        )

    @staticmethod
    def track_api_error(
        method: str,
        path: str,
        error_type: str,
        error_message: str,
        candidate_key: Optional[str] = None,
    ) -> None:
        """Track an API error response."""
        AnalyticsTracker.track_event(
            EventType.API_ERROR,
            candidate_key=candidate_key,
            properties={
                "method": method,
                "path": path,
                "error_type": error_type,
                "error_message": error_message,
            },
        )
