# backend/interview_scoring/services/session_store.py
import logging
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..db import Database, utc_now
from ..models.session import InterviewSession, SessionEmailLog, SessionStatus
from .alerts import Alerter

LOG = logging.getLogger("interview_scoring.sessions")

S = SessionStatus

# target status -> statuses it may be entered from
TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    S.webhook_received: frozenset({
        S.started,
        S.webhook_received,
        S.webhook_received_not_scored,
        S.scoring_enqueue_failed,
        S.scoring_failed_llm,
        S.scoring_failed_db,
    }),
    S.webhook_received_not_scored: frozenset({S.webhook_received}),
    S.scoring_enqueued: frozenset({S.webhook_received}),
    S.scoring_enqueue_failed: frozenset({S.webhook_received}),
    # a runner can claim the job before ingestion writes scoring_enqueued
    S.scoring_in_progress: frozenset({
        S.webhook_received,
        S.scoring_enqueued,
        S.scoring_in_progress,
        S.scoring_failed_llm,
        S.scoring_failed_db,
    }),
    S.scored_successfully: frozenset({S.scoring_in_progress}),
    S.scoring_failed_llm: frozenset({S.scoring_in_progress}),
    S.scoring_failed_db: frozenset({S.scoring_in_progress}),
}

# Labels shown to candidates; status_error stays operator-only.
STATUS_LABELS: Dict[SessionStatus, str] = {
    S.started: "Interview in progress",
    S.webhook_received: "Interview finished, preparing your feedback",
    S.webhook_received_not_scored: "Interview ended before it could be scored",
    S.scoring_enqueued: "Your feedback is queued",
    S.scoring_in_progress: "Generating your feedback",
    S.scored_successfully: "Your feedback is ready",
    S.scoring_enqueue_failed: "We hit an issue generating your feedback",
    S.scoring_failed_llm: "We hit an issue generating your feedback",
    S.scoring_failed_db: "We hit an issue generating your feedback",
}


class SessionExistsError(Exception):
    pass


def is_terminal_status(status: str) -> bool:
    try:
        return SessionStatus(status).is_terminal
    except ValueError:
        return False


def status_label(status: str) -> str:
    try:
        return STATUS_LABELS[SessionStatus(status)]
    except ValueError:
        return "Unknown"


class SessionStore:
    def __init__(self, db: Database, alerter: Optional[Alerter] = None):
        self.db = db
        self.alerter = alerter or Alerter()

    async def create(
        self,
        session_id: str,
        rubric_id: str,
        rubric_name: Optional[str] = None,
        interview_type: Optional[str] = None,
        email: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> InterviewSession:
        now = utc_now()
        row = InterviewSession(
            session_id=session_id,
            rubric_id=rubric_id,
            rubric_name=rubric_name,
            interview_type=interview_type,
            email=email,
            user_name=user_name,
            status=S.started.value,
            status_updated_at=now,
            status_error=None,
            results_email_sent=False,
            started_at=now,
            updated_at=now,
        )
        try:
            async with self.db.transaction() as s:
                s.add(row)
        except IntegrityError as e:
            raise SessionExistsError(session_id) from e
        LOG.info("Session created session=%s rubric=%s", session_id, rubric_id)
        return row

    async def get(self, session_id: str) -> Optional[InterviewSession]:
        async with self.db.session() as s:
            q = await s.execute(select(InterviewSession).where(InterviewSession.session_id == session_id))
            return q.scalars().first()

    async def transition(
        self,
        session_id: str,
        target: SessionStatus,
        error: Optional[str] = None,
        webhook_call_status: Optional[str] = None,
        webhook_end_reason: Optional[str] = None,
    ) -> bool:
        """
        Move a session to ``target`` if its stored status allows it.

        The check and the write are one guarded UPDATE, so the decision is made
        against the row as it is now, not a copy read earlier. Returns False
        when the session is missing or in a status ``target`` cannot follow.
        """
        target = SessionStatus(target)
        sources = [s.value for s in TRANSITIONS[target]]
        now = utc_now()
        values = {
            "status": target.value,
            "status_updated_at": now,
            "status_error": error,
            "updated_at": now,
        }
        if target == S.webhook_received:
            values["webhook_call_status"] = webhook_call_status
            values["webhook_end_reason"] = webhook_end_reason

        stmt = (
            update(InterviewSession)
            .where(InterviewSession.session_id == session_id)
            .where(InterviewSession.status.in_(sources))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.db.transaction() as s:
            res = await s.execute(stmt)
            updated = res.rowcount

        if not updated:
            current = await self.get(session_id)
            if current is None:
                LOG.warning("Transition to %s skipped: session %s not found", target.value, session_id)
            else:
                LOG.warning("Transition %s -> %s rejected for session %s",
                            current.status, target.value, session_id)
            return False

        LOG.info("Session status updated session=%s status=%s error=%s", session_id, target.value, error)
        if target.is_failure:
            self._alert_failure(session_id, target, error)
        return True

    def _alert_failure(self, session_id: str, status: SessionStatus, error: Optional[str]) -> None:
        kind = status.value.replace("scoring_", "").replace("failed_", "").upper()
        try:
            self.alerter.fire(
                f"Scoring Failed: {kind}",
                f"Scoring pipeline failed for session ID: {session_id}",
                [
                    {"name": "Session ID", "value": session_id, "inline": True},
                    {"name": "Status", "value": status.value, "inline": True},
                    {"name": "Error", "value": error or "N/A", "inline": False},
                ],
            )
        except Exception:
            LOG.exception("Could not schedule alert for session %s", session_id)

    async def log_email_attempt(self, session_id: str, email: str) -> None:
        async with self.db.transaction() as s:
            s.add(SessionEmailLog(session_id=session_id, email=email, created_at=utc_now()))
            await s.execute(
                update(InterviewSession)
                .where(InterviewSession.session_id == session_id)
                .values(updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )

    async def email_log(self, session_id: str) -> List[SessionEmailLog]:
        async with self.db.session() as s:
            q = await s.execute(
                select(SessionEmailLog)
                .where(SessionEmailLog.session_id == session_id)
                .order_by(SessionEmailLog.id)
            )
            return list(q.scalars().all())

    async def mark_results_emailed(self, session_id: str) -> bool:
        """Flip results_email_sent once; False if it was already set."""
        stmt = (
            update(InterviewSession)
            .where(InterviewSession.session_id == session_id)
            .where(InterviewSession.results_email_sent.is_(False))
            .values(results_email_sent=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        async with self.db.transaction() as s:
            res = await s.execute(stmt)
            return bool(res.rowcount)
