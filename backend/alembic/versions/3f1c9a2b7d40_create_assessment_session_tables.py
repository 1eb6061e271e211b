"""create assessment session tables

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-19 09:12:44.301218

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create assessments, questions, sessions, answers and violations."""
    op.create_table(
        "assessments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=False),
        sa.Column("pass_threshold", sa.Integer(), nullable=False),
        sa.Column("question_count", sa.Integer(), nullable=False),
        sa.Column("shuffle_questions", sa.Boolean(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("cooldown_minutes", sa.Integer(), nullable=True),
        sa.Column("access_code", sa.String(length=100), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("allow_review", sa.Boolean(), nullable=False),
        sa.Column("show_results", sa.Boolean(), nullable=False),
        sa.Column("public_code", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "pass_threshold >= 0 AND pass_threshold <= 100",
            name="ck_assessments_pass_threshold_range",
        ),
        sa.CheckConstraint("time_limit_minutes > 0", name="ck_assessments_time_limit"),
        sa.CheckConstraint("question_count > 0", name="ck_assessments_question_count"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assessments_id", "assessments", ["id"])
    op.create_index(
        "ix_assessments_public_code", "assessments", ["public_code"], unique=True
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("assessment_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("stem", sa.Text(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_index", sa.Integer(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["assessment_id"], ["assessments.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_questions_id", "questions", ["id"])
    op.create_index("ix_questions_assessment_id", "questions", ["assessment_id"])

    op.create_table(
        "assessment_sessions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("assessment_id", sa.Integer(), nullable=False),
        sa.Column("candidate_id", sa.String(length=255), nullable=True),
        sa.Column("contact_fingerprint", sa.String(length=64), nullable=True),
        sa.Column("candidate_key", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("question_sequence", sa.JSON(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("correct_count", sa.Integer(), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("certificate_url", sa.String(length=500), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "(status = 'in_progress' AND completed_at IS NULL) OR "
            "(status != 'in_progress' AND completed_at IS NOT NULL)",
            name="ck_assessment_sessions_completed_at_terminal",
        ),
        sa.CheckConstraint(
            "score IS NULL OR (score >= 0 AND score <= 100)",
            name="ck_assessment_sessions_score_range",
        ),
        sa.CheckConstraint(
            "completed_at IS NULL OR completed_at >= created_at",
            name="ck_assessment_sessions_completed_after_created",
        ),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_assessment_sessions_assessment_id", "assessment_sessions", ["assessment_id"]
    )
    op.create_index("ix_assessment_sessions_status", "assessment_sessions", ["status"])
    op.create_index(
        "ix_assessment_sessions_completed_at", "assessment_sessions", ["completed_at"]
    )
    op.create_index(
        "ix_assessment_sessions_candidate",
        "assessment_sessions",
        ["assessment_id", "candidate_key", "status"],
    )
    # One in-progress attempt per (assessment, candidate)
    op.create_index(
        "ix_assessment_sessions_one_active",
        "assessment_sessions",
        ["assessment_id", "candidate_key"],
        unique=True,
        postgresql_where=sa.text("status = 'in_progress'"),
        sqlite_where=sa.text("status = 'in_progress'"),
    )

    op.create_table(
        "session_answers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("selected_index", sa.Integer(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["session_id"], ["assessment_sessions.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "question_id", name="uq_session_answer"),
    )
    op.create_index("ix_session_answers_id", "session_answers", ["id"])
    op.create_index("ix_session_answers_session_id", "session_answers", ["session_id"])
    op.create_index(
        "ix_session_answers_question_id", "session_answers", ["question_id"]
    )

    op.create_table(
        "session_violations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(
            ["session_id"], ["assessment_sessions.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_session_violations_id", "session_violations", ["id"])
    op.create_index(
        "ix_session_violations_session_id", "session_violations", ["session_id"]
    )


def downgrade() -> None:
    """Drop all assessment session tables."""
    op.drop_table("session_violations")
    op.drop_table("session_answers")
    op.drop_index("ix_assessment_sessions_one_active", table_name="assessment_sessions")
    op.drop_table("assessment_sessions")
    op.drop_table("questions")
    op.drop_table("assessments")
