"""
Grading engine for terminal assessment sessions.

Correctness is computed only here, never on the in-progress path. Grading is
a pure function of the persisted answers and the assessment's pass threshold
at grading time, so recomputing it yields the same outcome.

Scoring rules:
    correct = count(answers where selected_index == question.correct_index)
    score   = round_half_up(100 * correct / len(question_sequence))
    passed  = score >= assessment.pass_threshold

Unanswered questions and questions deleted from the bank since the session
started count as incorrect and stay in the denominator.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.observability import capture_anomaly
from app.core.question_bank import get_questions_by_id
from app.models.models import Assessment, AssessmentSession, SessionAnswer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading one session."""

    score: int
    passed: bool
    correct_count: int
    total_questions: int
    missing_question_ids: List[int] = field(default_factory=list)


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, with .5 always rounding up.

    Python's built-in round() uses banker's rounding (round(12.5) == 12),
    which would under-report half-point scores.

    Args:
        value: Non-negative number to round

    Returns:
        Rounded integer
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_half_up(numerator: int, denominator: int) -> int:
    """
    Exact round-half-up of 100 * numerator / denominator using integer math.

    Raises:
        ValueError: If denominator is not positive or numerator is negative
    """
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (200 * numerator + denominator) // (2 * denominator)


def calculate_score(correct: int, total: int) -> int:
    """
    Calculate a 0-100 score from the number of correct answers.

    Args:
        correct: Number of correct answers
        total: Number of questions in the session's sequence

    Returns:
        Score in [0, 100]

    Raises:
        ValueError: If total is zero or correct is outside [0, total]
    """
    if total <= 0:
        raise ValueError("Cannot score a session with no questions")
    if correct < 0 or correct > total:
        raise ValueError(f"correct must be between 0 and {total}, got {correct}")
    return percent_half_up(correct, total)


def grade_session(
    db: Session,
    session: AssessmentSession,
    assessment: Assessment,
    graded_at: datetime,
) -> GradeResult:
    """
    Grade a terminal session and store the outcome on it.

    Sets `is_correct` on every answer, then `score`, `passed`,
    `correct_count` and (on first grading only) `graded_at`. Never modifies
    `status` or `completed_at`. The caller commits.

    Args:
        db: Database session
        session: Terminal session to grade
        assessment: The session's assessment, read for its current threshold
        graded_at: Server time of this grading

    Returns:
        GradeResult with the computed outcome

    Raises:
        ValueError: If the session is not terminal or has an empty sequence
    """
    if not session.is_terminal:
        raise ValueError(f"Cannot grade session {session.id}: status is not terminal")

    sequence: List[int] = list(session.question_sequence or [])
    if not sequence:
        raise ValueError(f"Cannot grade session {session.id}: empty question sequence")

    questions = get_questions_by_id(db, sequence)
    answers = {a.question_id: a for a in session.answers}

    correct = 0
    missing: List[int] = []
    for position, question_id in enumerate(sequence):
        answer: Optional[SessionAnswer] = answers.get(question_id)
        if answer is None:
            # Every question in the sequence gets an entry once graded
            answer = SessionAnswer(
                question_id=question_id, position=position, selected_index=None
            )
            session.answers.append(answer)

        question = questions.get(question_id)
        if question is None:
            missing.append(question_id)
            answer.is_correct = False
            continue

        is_correct = (
            answer.selected_index is not None
            and answer.selected_index == question.correct_index
        )
        answer.is_correct = is_correct
        if is_correct:
            correct += 1

    if missing:
        logger.error(
            f"Grading anomaly for session {session.id}: questions {missing} no longer "
            "exist and were scored incorrect",
            extra={"session_id": session.id, "assessment_id": session.assessment_id},
        )
        capture_anomaly(
            "Questions missing at grading time",
            context={
                "session_id": session.id,
                "assessment_id": session.assessment_id,
                "missing_question_ids": ",".join(str(q) for q in missing),
            },
            tags={"anomaly": "grading"},
            level="error",
        )

    score = calculate_score(correct, len(sequence))
    passed = score >= assessment.pass_threshold

    session.score = score
    session.passed = passed
    session.correct_count = correct
    if session.graded_at is None:
        session.graded_at = graded_at

    logger.info(
        f"Graded session {session.id}: {correct}/{len(sequence)} correct, "
        f"score={score}, passed={passed}",
        extra={"session_id": session.id, "assessment_id": session.assessment_id},
    )

    return GradeResult(
        score=score,
        passed=passed,
        correct_count=correct,
        total_questions=len(sequence),
        missing_question_ids=missing,
    )
