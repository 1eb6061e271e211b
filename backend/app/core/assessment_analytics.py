"""
Cohort analytics for a single assessment.

Cohort statistics (percentile/rank, difficulty, heatmap, summary, performers)
use only sessions that finished by submission or by time-out. Abandoned
sessions are graded but left out: an administrative termination says nothing
about the candidate's ability. Flagged-session review and live monitoring
look at every session regardless of status.

Ranking policy: competition ranking. rank = 1 + number of strictly greater
scores, so tied sessions share the best rank among them (scores 90, 80, 80,
70 rank 1, 2, 2, 4).
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from sqlalchemy.orm import Session, selectinload

from app.core.clock import ensure_timezone_aware
from app.core.config import settings
from app.core.grading import percent_half_up, round_half_up
from app.core.question_bank import get_questions_by_id
from app.core.session_state import remaining_seconds
from app.models.models import (
    Assessment,
    AssessmentSession,
    RANKED_STATUSES,
    SessionStatus,
    ViolationKind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStanding:
    percentile: int
    rank: int
    cohort_size: int


@dataclass(frozen=True)
class QuestionDifficulty:
    question_id: int
    stem: Optional[str]
    answered_count: int
    correct_count: int
    percent_correct: Optional[int]
    mean_latency_seconds: Optional[float]
    question_deleted: bool


@dataclass(frozen=True)
class HeatmapCell:
    position: int
    violation_count: int


@dataclass(frozen=True)
class ViolationHeatmap:
    cells: List[HeatmapCell]
    unattributed: int
    total_violations: int
    sessions_with_telemetry: int
    sessions_without_telemetry: int
    degraded: bool


@dataclass(frozen=True)
class ScoreBucket:
    label: str
    lower: int
    upper: int
    count: int


@dataclass(frozen=True)
class AssessmentSummary:
    total_sessions: int
    in_progress_count: int
    completed_count: int
    timed_out_count: int
    abandoned_count: int
    scored_count: int
    average_score: Optional[float]
    median_score: Optional[int]
    pass_rate: Optional[int]
    score_distribution: List[ScoreBucket]


@dataclass(frozen=True)
class FlaggedSession:
    session_id: str
    candidate_key: str
    status: SessionStatus
    violation_count: int
    severity: str  # "review" or "high"
    score: Optional[int]


@dataclass(frozen=True)
class PerformerEntry:
    session_id: str
    candidate_key: str
    score: int
    passed: bool
    completed_at: datetime


@dataclass(frozen=True)
class ActiveSession:
    session_id: str
    candidate_key: str
    started_at: datetime
    elapsed_seconds: int
    remaining_seconds: int
    answered_count: int
    total_questions: int
    violation_count: int
    flagged_for_review: bool
    last_activity_at: Optional[datetime]


# ----------------------------------------------------------------------------
# Cohort loading
# ----------------------------------------------------------------------------


def _cohort_sessions(db: Session, assessment_id: int) -> List[AssessmentSession]:
    """Graded completed/timed-out sessions with answers and violations loaded."""
    return (
        db.query(AssessmentSession)
        .options(
            selectinload(AssessmentSession.answers),
            selectinload(AssessmentSession.violations),
        )
        .filter(
            AssessmentSession.assessment_id == assessment_id,
            AssessmentSession.status.in_(RANKED_STATUSES),
            AssessmentSession.score.isnot(None),
        )
        .all()
    )


def _cohort_scores(db: Session, assessment_id: int) -> List[int]:
    rows = (
        db.query(AssessmentSession.score)
        .filter(
            AssessmentSession.assessment_id == assessment_id,
            AssessmentSession.status.in_(RANKED_STATUSES),
            AssessmentSession.score.isnot(None),
        )
        .all()
    )
    return [row.score for row in rows]


# ----------------------------------------------------------------------------
# Percentile / rank
# ----------------------------------------------------------------------------


def percentile_and_rank(target: int, scores: Sequence[int]) -> Tuple[int, int]:
    """
    Standing of a score within a cohort.

    percentile = round_half_up(100 * count(scores < target) / len(scores))
    rank       = 1 + count(scores > target)

    Args:
        target: Score being ranked (normally itself a member of `scores`)
        scores: All cohort scores

    Returns:
        (percentile, rank)

    Raises:
        ValueError: If scores is empty
    """
    if not scores:
        raise ValueError("Cannot rank against an empty cohort")
    below = sum(1 for s in scores if s < target)
    above = sum(1 for s in scores if s > target)
    return percent_half_up(below, len(scores)), 1 + above


def session_standing(
    db: Session, session: AssessmentSession
) -> Optional[SessionStanding]:
    """Percentile and rank of one graded session; None if it is not ranked."""
    if session.status_enum not in RANKED_STATUSES or session.score is None:
        return None
    scores = _cohort_scores(db, session.assessment_id)
    if not scores:
        return None
    percentile, rank = percentile_and_rank(session.score, scores)
    return SessionStanding(percentile=percentile, rank=rank, cohort_size=len(scores))


# ----------------------------------------------------------------------------
# Question difficulty
# ----------------------------------------------------------------------------


def question_difficulty(db: Session, assessment_id: int) -> List[QuestionDifficulty]:
    """
    Per-question correctness and response latency across the cohort.

    A question counts as answered when a selection was recorded. Latency is
    `answered_at - session.created_at`. Results are ordered hardest first;
    questions nobody answered come last.
    """
    sessions = _cohort_sessions(db, assessment_id)

    answered: Dict[int, int] = {}
    correct: Dict[int, int] = {}
    latencies: Dict[int, List[float]] = {}
    seen: List[int] = []

    for session in sessions:
        created_at = ensure_timezone_aware(session.created_at)
        for answer in session.answers:
            qid = answer.question_id
            if qid not in answered:
                answered[qid] = 0
                correct[qid] = 0
                latencies[qid] = []
                seen.append(qid)
            if answer.selected_index is None:
                continue
            answered[qid] += 1
            if answer.is_correct:
                correct[qid] += 1
            if answer.answered_at is not None:
                delta = ensure_timezone_aware(answer.answered_at) - created_at
                latencies[qid].append(delta.total_seconds())

    questions = get_questions_by_id(db, seen)
    results: List[QuestionDifficulty] = []
    for qid in seen:
        question = questions.get(qid)
        mean_latency = (
            round(float(np.mean(latencies[qid])), 1) if latencies[qid] else None
        )
        results.append(
            QuestionDifficulty(
                question_id=qid,
                stem=question.stem if question is not None else None,
                answered_count=answered[qid],
                correct_count=correct[qid],
                percent_correct=(
                    percent_half_up(correct[qid], answered[qid])
                    if answered[qid]
                    else None
                ),
                mean_latency_seconds=mean_latency,
                question_deleted=question is None,
            )
        )

    results.sort(
        key=lambda r: (
            r.percent_correct is None,
            r.percent_correct if r.percent_correct is not None else 0,
            r.question_id,
        )
    )
    return results


# ----------------------------------------------------------------------------
# Violation heatmap
# ----------------------------------------------------------------------------


def violation_heatmap(db: Session, assessment_id: int) -> ViolationHeatmap:
    """
    Count `left` violations per sequence position.

    A violation is attributed to the question most recently first-viewed at
    or before it, i.e. it falls between that question's first view and the
    next first view in time (the last window stays open until completion).
    Violations before any view, and all violations of sessions without view
    telemetry, only count toward `unattributed`. `degraded` is True when no
    session in the cohort reported view telemetry.
    """
    sessions = _cohort_sessions(db, assessment_id)
    width = max((len(s.question_sequence or []) for s in sessions), default=0)
    counts = [0] * width
    unattributed = 0
    total = 0
    with_telemetry = 0

    for session in sessions:
        left_times = [
            ensure_timezone_aware(v.occurred_at)
            for v in session.violations
            if v.kind == ViolationKind.LEFT
        ]
        total += len(left_times)

        views = sorted(
            (ensure_timezone_aware(a.viewed_at), a.position)
            for a in session.answers
            if a.viewed_at is not None
        )
        if not views:
            unattributed += len(left_times)
            continue
        with_telemetry += 1

        for occurred_at in left_times:
            position = None
            for viewed_at, view_position in views:
                if viewed_at <= occurred_at:
                    position = view_position
                else:
                    break
            if position is None:
                unattributed += 1
            else:
                counts[position] += 1

    degraded = bool(sessions) and with_telemetry == 0
    if degraded:
        logger.debug(
            f"Violation heatmap for assessment {assessment_id} degraded to "
            "session-level counts (no view telemetry)",
            extra={"assessment_id": assessment_id},
        )

    return ViolationHeatmap(
        cells=[HeatmapCell(position=i, violation_count=c) for i, c in enumerate(counts)],
        unattributed=unattributed,
        total_violations=total,
        sessions_with_telemetry=with_telemetry,
        sessions_without_telemetry=len(sessions) - with_telemetry,
        degraded=degraded,
    )


# ----------------------------------------------------------------------------
# Summary, review and monitoring
# ----------------------------------------------------------------------------


def score_distribution(
    scores: Sequence[int], bucket_count: Optional[int] = None
) -> List[ScoreBucket]:
    """
    Histogram of scores over equal-width buckets spanning 0-100.

    With the default 10 buckets the labels are "0-9", "10-19", ...,
    "90-100"; a perfect score lands in the last bucket.
    """
    bucket_count = bucket_count or settings.SCORE_DISTRIBUTION_BUCKETS
    bounds = [round_half_up(100 * i / bucket_count) for i in range(bucket_count + 1)]
    counts = [0] * bucket_count
    for score in scores:
        index = bucket_count - 1
        for i in range(bucket_count):
            if score < bounds[i + 1]:
                index = i
                break
        counts[index] += 1

    buckets: List[ScoreBucket] = []
    for i in range(bucket_count):
        lower = bounds[i]
        upper = 100 if i == bucket_count - 1 else bounds[i + 1] - 1
        buckets.append(
            ScoreBucket(label=f"{lower}-{upper}", lower=lower, upper=upper, count=counts[i])
        )
    return buckets


def assessment_summary(db: Session, assessment_id: int) -> AssessmentSummary:
    """Attempt counts, average/median score, pass rate and score distribution."""
    status_rows = (
        db.query(AssessmentSession.status)
        .filter(AssessmentSession.assessment_id == assessment_id)
        .all()
    )
    by_status = {status: 0 for status in SessionStatus}
    for row in status_rows:
        by_status[SessionStatus(row.status)] += 1

    cohort = (
        db.query(AssessmentSession.score, AssessmentSession.passed)
        .filter(
            AssessmentSession.assessment_id == assessment_id,
            AssessmentSession.status.in_(RANKED_STATUSES),
            AssessmentSession.score.isnot(None),
        )
        .all()
    )
    scores = [row.score for row in cohort]

    if scores:
        values = np.asarray(scores, dtype=float)
        average_score: Optional[float] = round(float(np.mean(values)), 1)
        median_score: Optional[int] = round_half_up(float(np.median(values)))
        pass_rate: Optional[int] = percent_half_up(
            sum(1 for row in cohort if row.passed), len(cohort)
        )
    else:
        average_score = median_score = pass_rate = None

    return AssessmentSummary(
        total_sessions=len(status_rows),
        in_progress_count=by_status[SessionStatus.IN_PROGRESS],
        completed_count=by_status[SessionStatus.COMPLETED],
        timed_out_count=by_status[SessionStatus.TIMED_OUT],
        abandoned_count=by_status[SessionStatus.ABANDONED],
        scored_count=len(scores),
        average_score=average_score,
        median_score=median_score,
        pass_rate=pass_rate,
        score_distribution=score_distribution(scores),
    )


def flagged_sessions(db: Session, assessment_id: int) -> List[FlaggedSession]:
    """
    Sessions whose violation count reached the review threshold, most
    violations first. Classification happens at read time only.
    """
    sessions = (
        db.query(AssessmentSession)
        .options(selectinload(AssessmentSession.violations))
        .filter(AssessmentSession.assessment_id == assessment_id)
        .all()
    )
    flagged: List[FlaggedSession] = []
    for session in sessions:
        count = session.violation_count
        if count < settings.VIOLATION_REVIEW_THRESHOLD:
            continue
        flagged.append(
            FlaggedSession(
                session_id=session.id,
                candidate_key=session.candidate_key,
                status=session.status_enum,
                violation_count=count,
                severity="high" if count >= settings.VIOLATION_HIGH_THRESHOLD else "review",
                score=session.score,
            )
        )
    flagged.sort(key=lambda f: (-f.violation_count, f.session_id))
    return flagged


def top_and_bottom_performers(
    db: Session, assessment_id: int, limit: Optional[int] = None
) -> Tuple[List[PerformerEntry], List[PerformerEntry]]:
    """Highest and lowest scoring cohort sessions; earlier finishers win ties."""
    limit = limit or settings.TOP_PERFORMERS_LIMIT
    rows = (
        db.query(AssessmentSession)
        .filter(
            AssessmentSession.assessment_id == assessment_id,
            AssessmentSession.status.in_(RANKED_STATUSES),
            AssessmentSession.score.isnot(None),
        )
        .all()
    )
    entries = [
        PerformerEntry(
            session_id=s.id,
            candidate_key=s.candidate_key,
            score=s.score,
            passed=bool(s.passed),
            completed_at=ensure_timezone_aware(s.completed_at),
        )
        for s in rows
    ]
    top = sorted(entries, key=lambda e: (-e.score, e.completed_at))[:limit]
    bottom = sorted(entries, key=lambda e: (e.score, e.completed_at))[:limit]
    return top, bottom


def active_sessions(
    db: Session, assessment: Assessment, now: datetime
) -> List[ActiveSession]:
    """Live view of in-progress sessions, oldest first."""
    sessions = (
        db.query(AssessmentSession)
        .options(
            selectinload(AssessmentSession.answers),
            selectinload(AssessmentSession.violations),
        )
        .filter(
            AssessmentSession.assessment_id == assessment.id,
            AssessmentSession.status == SessionStatus.IN_PROGRESS,
        )
        .order_by(AssessmentSession.created_at)
        .all()
    )
    now = ensure_timezone_aware(now)
    result: List[ActiveSession] = []
    for session in sessions:
        started_at = ensure_timezone_aware(session.created_at)
        count = session.violation_count
        result.append(
            ActiveSession(
                session_id=session.id,
                candidate_key=session.candidate_key,
                started_at=started_at,
                elapsed_seconds=max(0, int((now - started_at).total_seconds())),
                remaining_seconds=remaining_seconds(
                    SessionStatus.IN_PROGRESS, started_at, assessment.time_limit, now
                ),
                answered_count=sum(
                    1 for a in session.answers if a.selected_index is not None
                ),
                total_questions=len(session.question_sequence or []),
                violation_count=count,
                flagged_for_review=count >= settings.VIOLATION_REVIEW_THRESHOLD,
                last_activity_at=(
                    ensure_timezone_aware(session.last_activity_at)
                    if session.last_activity_at
                    else None
                ),
            )
        )
    return result
