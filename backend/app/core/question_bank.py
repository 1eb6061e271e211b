"""
Read-only access to the authored question bank.

Question content is owned by the authoring side; the session engine only reads
it to build a session's fixed sequence, to validate option indices and to
grade. Correct option indices never leave this layer before grading.
"""
import random
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models.models import Question


def load_assessment_questions(db: Session, assessment_id: int) -> List[Question]:
    """Return an assessment's questions in authored order."""
    return (
        db.query(Question)
        .filter(Question.assessment_id == assessment_id)
        .order_by(Question.position, Question.id)
        .all()
    )


def build_question_sequence(
    questions: List[Question],
    question_count: int,
    shuffle: bool,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """
    Select and order the question ids for a new session.

    With shuffling, the whole pool is permuted before truncation so each
    session draws a random subset in random order. Without it, the first
    `question_count` questions in authored order are used.
    """
    ids = [q.id for q in questions]
    if shuffle:
        (rng or random.Random()).shuffle(ids)
    return ids[:question_count]


def get_questions_by_id(db: Session, question_ids: Iterable[int]) -> Dict[int, Question]:
    """Fetch the still-existing questions among `question_ids`, keyed by id."""
    ids = list(question_ids)
    if not ids:
        return {}
    rows = db.query(Question).filter(Question.id.in_(ids)).all()
    return {q.id: q for q in rows}


def option_index_valid(question: Question, selected_index: int) -> bool:
    options = question.options or []
    return 0 <= selected_index < len(options)
