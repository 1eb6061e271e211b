"""
Pydantic schemas for request/response validation.
"""
from .assessment_sessions import (
    AssessmentInfoResponse,
    AssessmentSessionResponse,
    StartSessionRequest,
    StartSessionResponse,
    PublicStartSessionRequest,
    PublicStartSessionResponse,
    SessionStateResponse,
    SubmitSessionResponse,
    SessionResultsResponse,
)
from .assessment_analytics import (
    AssessmentAnalyticsResponse,
    ActiveSessionsResponse,
    ReapResponse,
)

__all__ = [
    "AssessmentInfoResponse",
    "AssessmentSessionResponse",
    "StartSessionRequest",
    "StartSessionResponse",
    "PublicStartSessionRequest",
    "PublicStartSessionResponse",
    "SessionStateResponse",
    "SubmitSessionResponse",
    "SessionResultsResponse",
    # Admin schemas
    "AssessmentAnalyticsResponse",
    "ActiveSessionsResponse",
    "ReapResponse",
]
