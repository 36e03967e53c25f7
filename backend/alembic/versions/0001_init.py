"""initial tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_JOB = sa.text("status IN ('pending', 'processing')")


def upgrade():
    # SESSIONS
    op.create_table(
        "interview_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("rubric_id", sa.String(), nullable=False),
        sa.Column("rubric_name", sa.String(), nullable=True),
        sa.Column("interview_type", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("user_name", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=False),
        sa.Column("status_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status_error", sa.Text(), nullable=True),
        sa.Column("webhook_call_status", sa.String(), nullable=True),
        sa.Column("webhook_end_reason", sa.String(), nullable=True),
        sa.Column("results_email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_interview_sessions_id", "interview_sessions", ["id"])
    op.create_index("ix_interview_sessions_session_id", "interview_sessions", ["session_id"], unique=True)
    op.create_index("ix_interview_sessions_status", "interview_sessions", ["status"])

    # EMAIL ATTEMPT LOG
    op.create_table(
        "session_email_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(),
                  sa.ForeignKey("interview_sessions.session_id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_session_email_log_session_id", "session_email_log", ["session_id"])

    # SCORING JOBS
    op.create_table(
        "scoring_jobs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("rubric_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("status_error", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_scoring_jobs_id", "scoring_jobs", ["id"])
    op.create_index("ix_scoring_jobs_session_id", "scoring_jobs", ["session_id"])
    op.create_index("ix_scoring_jobs_claim", "scoring_jobs", ["status", "created_at"])
    # one pending/processing job per session
    op.create_index(
        "uq_scoring_jobs_active_session",
        "scoring_jobs",
        ["session_id"],
        unique=True,
        postgresql_where=ACTIVE_JOB,
        sqlite_where=ACTIVE_JOB,
    )

    # SCORES
    op.create_table(
        "scores",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("rubric_id", sa.String(), nullable=False),
        sa.Column("rubric_name", sa.String(), nullable=True),
        sa.Column("llm_response", sa.JSON(), nullable=False),
        sa.Column("transcript_text", sa.Text(), nullable=True),
        sa.Column("model_used", sa.String(), nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_scores_id", "scores", ["id"])
    op.create_index("ix_scores_session_id", "scores", ["session_id"])

    # RUBRICS
    op.create_table(
        "rubrics",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("definition", sa.JSON(), nullable=False),
        sa.Column("system_prompt", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_rubrics_id", "rubrics", ["id"])

    # TRANSCRIPTS
    op.create_table(
        "transcripts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_transcripts_id", "transcripts", ["id"])
    op.create_index("ix_transcripts_session_id", "transcripts", ["session_id"])


def downgrade():
    op.drop_table("transcripts")
    op.drop_table("rubrics")
    op.drop_table("scores")
    op.drop_index("uq_scoring_jobs_active_session", table_name="scoring_jobs")
    op.drop_table("scoring_jobs")
    op.drop_table("session_email_log")
    op.drop_table("interview_sessions")
