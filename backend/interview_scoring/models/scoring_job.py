# backend/interview_scoring/models/scoring_job.py
import enum
from sqlalchemy import Column, DateTime, Index, Integer, String, Text, text
from interview_scoring.db import Base, utc_now


class JobStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    archived = "archived"


ACTIVE_JOB_STATUSES = (JobStatus.pending.value, JobStatus.processing.value)

_active_clause = text("status IN ('pending', 'processing')")


class ScoringJob(Base):
    __tablename__ = "scoring_jobs"

    id = Column(String, primary_key=True, index=True)
    session_id = Column(String, index=True, nullable=False)
    rubric_id = Column(String, nullable=False)

    status = Column(String(20), nullable=False, default=JobStatus.pending.value)
    status_error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_scoring_jobs_claim", "status", "created_at"),
        # at most one pending/processing job per session
        Index(
            "uq_scoring_jobs_active_session",
            "session_id",
            unique=True,
            postgresql_where=_active_clause,
            sqlite_where=_active_clause,
        ),
    )
