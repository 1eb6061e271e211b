"""
Pydantic schemas for assessment and assessment session endpoints.

Question payloads never include the correct option index; that is only
exposed through the post-completion review when the assessment allows it.
"""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Dict, List, Optional
from datetime import datetime

from app.models.models import SessionStatus, ViolationKind


class AssessmentInfoResponse(BaseModel):
    """Public-safe description of an assessment."""

    id: int = Field(..., description="Assessment ID")
    title: str = Field(..., description="Assessment title")
    description: Optional[str] = Field(None, description="Assessment description")
    time_limit_minutes: int = Field(..., description="Time limit in minutes")
    question_count: int = Field(..., description="Number of questions per session")
    pass_threshold: int = Field(..., description="Minimum passing score (0-100)")
    max_attempts: Optional[int] = Field(
        None, description="Maximum attempts per candidate (null = unlimited)"
    )
    cooldown_minutes: Optional[int] = Field(
        None, description="Minimum wait between attempts in minutes"
    )
    start_date: Optional[datetime] = Field(None, description="Window opens")
    end_date: Optional[datetime] = Field(None, description="Window closes")
    access_code_required: bool = Field(
        ..., description="Whether an access code must be supplied to start"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class SessionQuestionResponse(BaseModel):
    """A question as shown to the candidate during a session."""

    id: int = Field(..., description="Question ID")
    stem: str = Field(..., description="Question text")
    options: List[str] = Field(..., description="Answer options in display order")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class AssessmentSessionResponse(BaseModel):
    """Schema for an assessment session."""

    id: str = Field(..., description="Session ID")
    assessment_id: int = Field(..., description="Assessment ID")
    status: SessionStatus = Field(
        ..., description="Session status (in_progress, completed, timed_out, abandoned)"
    )
    created_at: datetime = Field(..., description="Authoritative session start")
    completed_at: Optional[datetime] = Field(
        None, description="Terminal transition timestamp"
    )
    question_sequence: List[int] = Field(
        ..., description="Question IDs in the fixed order of this session"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class StartSessionRequest(BaseModel):
    """Schema for starting (or resuming) a session."""

    access_code: Optional[str] = Field(
        None, max_length=100, description="Access code, if the assessment requires one"
    )


class StartSessionResponse(BaseModel):
    """Schema returned when a session is started or resumed."""

    session: AssessmentSessionResponse = Field(..., description="The session")
    resumed: bool = Field(
        ..., description="True when an existing in-progress session was returned"
    )
    questions: List[SessionQuestionResponse] = Field(
        ..., description="Questions in session order"
    )
    total_questions: int = Field(..., description="Number of questions in session")
    remaining_seconds: int = Field(..., description="Seconds until the time limit")
    attempts_used: int = Field(
        ..., description="Finished attempts before this one"
    )


class PublicStartSessionRequest(StartSessionRequest):
    """Schema for starting a session through a public share link."""

    contact_email: EmailStr = Field(
        ..., description="Candidate contact email (stored only as a fingerprint)"
    )


class PublicStartSessionResponse(StartSessionResponse):
    """Public start response, with the bearer token for later session calls."""

    candidate_token: str = Field(
        ..., description="Bearer token identifying the anonymous candidate"
    )
    token_type: str = Field("bearer", description="Token type")


class SessionStateResponse(BaseModel):
    """Current authoritative state of a session."""

    session: AssessmentSessionResponse = Field(..., description="The session")
    remaining_seconds: int = Field(
        ..., ge=0, description="Seconds left (0 once terminal or expired)"
    )
    deadline: datetime = Field(..., description="Instant the time limit elapses")
    answers: Dict[int, Optional[int]] = Field(
        ..., description="Selected option index per question ID (null = unanswered)"
    )
    answered_count: int = Field(..., description="Number of answered questions")
    total_questions: int = Field(..., description="Number of questions in session")
    percent_complete: int = Field(
        ...,
        ge=0,
        le=100,
        description="Answered share of the questions still in the bank",
    )
    violation_count: int = Field(..., description="Times the exam window was left")
    flagged_for_review: bool = Field(
        ..., description="Violation count reached the review threshold"
    )
    questions: Optional[List[SessionQuestionResponse]] = Field(
        None, description="Questions for this session (if session is in_progress)"
    )


class RecordAnswerRequest(BaseModel):
    """Schema for recording (or replacing) the answer to one question."""

    question_id: int = Field(..., description="Question being answered")
    selected_index: int = Field(..., ge=0, description="Index of the chosen option")

    @field_validator("question_id")
    @classmethod
    def validate_question_id(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Question ID must be positive")
        return v


class RecordAnswerResponse(BaseModel):
    question_id: int = Field(..., description="Question answered")
    selected_index: int = Field(..., description="Stored option index")
    answered_at: datetime = Field(..., description="Server time of the answer")
    answered_count: int = Field(..., description="Answered questions so far")


class RecordViolationRequest(BaseModel):
    """Schema for a proctoring event reported by the exam client."""

    kind: ViolationKind = Field(..., description="'left' or 'returned'")


class RecordViolationResponse(BaseModel):
    kind: ViolationKind = Field(..., description="Recorded event kind")
    occurred_at: datetime = Field(..., description="Server time of the event")
    violation_count: int = Field(..., description="Times the exam window was left")
    flagged_for_review: bool = Field(
        ..., description="Violation count reached the review threshold"
    )


class RecordViewRequest(BaseModel):
    """Schema for question view telemetry."""

    question_id: int = Field(..., description="Question displayed to the candidate")


class RecordViewResponse(BaseModel):
    question_id: int = Field(..., description="Question viewed")
    viewed_at: datetime = Field(..., description="First time the question was shown")
    first_view: bool = Field(..., description="True if this call recorded the view")


class SubmitSessionResponse(BaseModel):
    """Outcome of an explicit submission."""

    session: AssessmentSessionResponse = Field(..., description="Completed session")
    score: int = Field(..., ge=0, le=100, description="Score (0-100)")
    passed: bool = Field(..., description="Score met the pass threshold")
    correct_count: int = Field(..., description="Number of correct answers")
    total_questions: int = Field(..., description="Number of questions in session")
    certificate_url: Optional[str] = Field(
        None, description="Certificate link, when issued"
    )


class ReviewItemResponse(BaseModel):
    """Per-question review shown after completion when review is allowed."""

    question_id: int = Field(..., description="Question ID")
    position: int = Field(..., description="Position in the session")
    stem: Optional[str] = Field(None, description="Question text (null if deleted)")
    options: Optional[List[str]] = Field(None, description="Answer options")
    selected_index: Optional[int] = Field(None, description="Candidate's selection")
    correct_index: Optional[int] = Field(None, description="Correct option index")
    is_correct: bool = Field(..., description="Whether the answer was correct")
    explanation: Optional[str] = Field(None, description="Author's explanation")


class SessionStandingResponse(BaseModel):
    percentile: int = Field(..., description="Percent of cohort scoring lower")
    rank: int = Field(..., description="Competition rank (ties share best rank)")
    cohort_size: int = Field(..., description="Number of ranked sessions")


class SessionResultsResponse(BaseModel):
    """Results of a finished session."""

    session: AssessmentSessionResponse = Field(..., description="The session")
    score: int = Field(..., ge=0, le=100, description="Score (0-100)")
    passed: bool = Field(..., description="Score met the pass threshold")
    correct_count: int = Field(..., description="Number of correct answers")
    total_questions: int = Field(..., description="Number of questions in session")
    violation_count: int = Field(..., description="Times the exam window was left")
    certificate_url: Optional[str] = Field(None, description="Certificate link")
    standing: Optional[SessionStandingResponse] = Field(
        None, description="Cohort standing (only when results are visible)"
    )
    review: Optional[List[ReviewItemResponse]] = Field(
        None, description="Per-question review (only when review is allowed)"
    )
