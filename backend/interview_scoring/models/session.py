# backend/interview_scoring/models/session.py
import enum
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from interview_scoring.db import Base, utc_now


class SessionStatus(str, enum.Enum):
    started = "started"
    webhook_received = "webhook_received"
    webhook_received_not_scored = "webhook_received_not_scored"
    scoring_enqueued = "scoring_enqueued"
    scoring_enqueue_failed = "scoring_enqueue_failed"
    scoring_in_progress = "scoring_in_progress"
    scored_successfully = "scored_successfully"
    scoring_failed_llm = "scoring_failed_llm"
    scoring_failed_db = "scoring_failed_db"

    @property
    def is_failure(self) -> bool:
        return "_failed" in self.value

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    SessionStatus.scored_successfully,
    SessionStatus.scoring_failed_llm,
    SessionStatus.scoring_failed_db,
    SessionStatus.scoring_enqueue_failed,
    SessionStatus.webhook_received_not_scored,
})


class InterviewSession(Base):
    __tablename__ = "interview_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String, unique=True, index=True, nullable=False)
    rubric_id = Column(String, nullable=False)
    rubric_name = Column(String, nullable=True)
    interview_type = Column(String, nullable=True)
    email = Column(String, nullable=True)
    user_name = Column(String, nullable=True)

    status = Column(String(40), nullable=False, default=SessionStatus.started.value, index=True)
    status_updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    status_error = Column(Text, nullable=True)

    webhook_call_status = Column(String, nullable=True)
    webhook_end_reason = Column(String, nullable=True)

    results_email_sent = Column(Boolean, nullable=False, default=False)

    started_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class SessionEmailLog(Base):
    """Append-only record of every results email attempt for a session."""

    __tablename__ = "session_email_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String,
        ForeignKey("interview_sessions.session_id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    email = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
