"""
Pydantic schemas for admin assessment analytics and session management.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.models.models import SessionStatus


class QuestionDifficultyResponse(BaseModel):
    question_id: int = Field(..., description="Question ID")
    stem: Optional[str] = Field(None, description="Question text (null if deleted)")
    answered_count: int = Field(..., description="Sessions that answered it")
    correct_count: int = Field(..., description="Sessions that answered correctly")
    percent_correct: Optional[int] = Field(
        None, description="Percent correct among answers (null if never answered)"
    )
    mean_latency_seconds: Optional[float] = Field(
        None, description="Mean seconds from session start to answer"
    )
    question_deleted: bool = Field(
        ..., description="Question no longer exists in the bank"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class HeatmapCellResponse(BaseModel):
    position: int = Field(..., description="Zero-based position in the session")
    violation_count: int = Field(..., description="'left' events attributed here")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class ViolationHeatmapResponse(BaseModel):
    cells: List[HeatmapCellResponse] = Field(..., description="Counts per position")
    unattributed: int = Field(
        ..., description="Violations that could not be tied to a question"
    )
    total_violations: int = Field(..., description="All 'left' events in the cohort")
    sessions_with_telemetry: int = Field(..., description="Sessions with view data")
    sessions_without_telemetry: int = Field(
        ..., description="Sessions counted at session level only"
    )
    degraded: bool = Field(
        ..., description="True when no session reported view telemetry"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class ScoreBucketResponse(BaseModel):
    label: str = Field(..., description="Bucket label, e.g. '70-79'")
    lower: int = Field(..., description="Inclusive lower bound")
    upper: int = Field(..., description="Inclusive upper bound")
    count: int = Field(..., description="Sessions in this bucket")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class AssessmentSummaryResponse(BaseModel):
    total_sessions: int = Field(..., description="All sessions, any status")
    in_progress_count: int = Field(..., description="Sessions still running")
    completed_count: int = Field(..., description="Submitted sessions")
    timed_out_count: int = Field(..., description="Sessions ended by the time limit")
    abandoned_count: int = Field(..., description="Administratively ended sessions")
    scored_count: int = Field(..., description="Sessions in the cohort statistics")
    average_score: Optional[float] = Field(None, description="Mean cohort score")
    median_score: Optional[int] = Field(None, description="Median cohort score")
    pass_rate: Optional[int] = Field(None, description="Percent of cohort that passed")
    score_distribution: List[ScoreBucketResponse] = Field(
        ..., description="Score histogram"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class FlaggedSessionResponse(BaseModel):
    session_id: str = Field(..., description="Session ID")
    candidate_key: str = Field(..., description="Opaque candidate key")
    status: SessionStatus = Field(..., description="Session status")
    violation_count: int = Field(..., description="Times the exam window was left")
    severity: str = Field(..., description="'review' or 'high'")
    score: Optional[int] = Field(None, description="Score, once graded")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class PerformerResponse(BaseModel):
    session_id: str = Field(..., description="Session ID")
    candidate_key: str = Field(..., description="Opaque candidate key")
    score: int = Field(..., description="Score (0-100)")
    passed: bool = Field(..., description="Passed")
    completed_at: datetime = Field(..., description="Completion time")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class AssessmentAnalyticsResponse(BaseModel):
    """Cohort analytics for one assessment."""

    assessment_id: int = Field(..., description="Assessment ID")
    summary: AssessmentSummaryResponse = Field(..., description="Aggregate results")
    question_difficulty: List[QuestionDifficultyResponse] = Field(
        ..., description="Per-question statistics, hardest first"
    )
    violation_heatmap: ViolationHeatmapResponse = Field(
        ..., description="Violations per question position"
    )
    flagged_sessions: List[FlaggedSessionResponse] = Field(
        ..., description="Sessions at or above the review threshold"
    )
    top_performers: List[PerformerResponse] = Field(..., description="Highest scores")
    bottom_performers: List[PerformerResponse] = Field(..., description="Lowest scores")
    expired_before_read: int = Field(
        0, description="Stale sessions expired before computing these statistics"
    )


class ActiveSessionResponse(BaseModel):
    session_id: str = Field(..., description="Session ID")
    candidate_key: str = Field(..., description="Opaque candidate key")
    started_at: datetime = Field(..., description="Session start")
    elapsed_seconds: int = Field(..., description="Seconds since start")
    remaining_seconds: int = Field(..., description="Seconds until the time limit")
    answered_count: int = Field(..., description="Answered questions")
    total_questions: int = Field(..., description="Questions in session")
    violation_count: int = Field(..., description="Times the exam window was left")
    flagged_for_review: bool = Field(..., description="At or above review threshold")
    last_activity_at: Optional[datetime] = Field(None, description="Last mutation")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class ActiveSessionsResponse(BaseModel):
    assessment_id: int = Field(..., description="Assessment ID")
    sessions: List[ActiveSessionResponse] = Field(..., description="Live sessions")
    expired_before_read: int = Field(
        0, description="Stale sessions expired before listing"
    )


class ReapResponse(BaseModel):
    expired: int = Field(..., description="Sessions transitioned to timed_out")


class AbandonSessionRequest(BaseModel):
    reason: Optional[str] = Field(
        None, max_length=500, description="Why the session is being ended"
    )


class AbandonSessionResponse(BaseModel):
    session_id: str = Field(..., description="Session ID")
    status: SessionStatus = Field(..., description="New status (abandoned)")
    score: int = Field(..., description="Score at abandonment")
    passed: bool = Field(..., description="Whether the score met the threshold")


class AttachCertificateRequest(BaseModel):
    certificate_url: str = Field(
        ..., min_length=1, max_length=500, description="URL returned by the issuer"
    )


class AttachCertificateResponse(BaseModel):
    session_id: str = Field(..., description="Session ID")
    certificate_url: str = Field(..., description="Stored certificate URL")
