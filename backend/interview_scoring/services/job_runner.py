# backend/interview_scoring/services/job_runner.py
import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import async_timeout

from ..models.scoring_job import ScoringJob
from ..models.session import SessionStatus
from .job_queue import JobQueue
from .mailer import EmailSender
from .scoring import ScoringEngine, ScoringEngineError
from .session_store import SessionStore

LOG = logging.getLogger("interview_scoring.runner")

DEFAULT_SCORING_TIMEOUT = 55.0


@dataclass
class RunOutcome:
    status: str  # no_jobs | completed | failed
    message: str
    job_id: Optional[str] = None
    session_id: Optional[str] = None
    attempt: Optional[int] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def classify_failure(exc: BaseException) -> SessionStatus:
    """Engine-side problems vs everything else (treated as persistence)."""
    if isinstance(exc, (ScoringEngineError, asyncio.TimeoutError)):
        return SessionStatus.scoring_failed_llm
    return SessionStatus.scoring_failed_db


class JobRunner:
    def __init__(
        self,
        queue: JobQueue,
        sessions: SessionStore,
        engine: ScoringEngine,
        email_sender: EmailSender,
        timeout_seconds: float = DEFAULT_SCORING_TIMEOUT,
    ):
        self.queue = queue
        self.sessions = sessions
        self.engine = engine
        self.email_sender = email_sender
        self.timeout_seconds = timeout_seconds

    async def run_once(self) -> RunOutcome:
        """Claim at most one pending job and run it to a terminal status."""
        job = await self.queue.claim_next()
        if job is None:
            LOG.info("No pending scoring jobs to process")
            return RunOutcome(status="no_jobs", message="No jobs to process")
        return await self.execute(job)

    async def execute(self, job: ScoringJob) -> RunOutcome:
        LOG.info("Processing scoring job=%s session=%s attempt=%d",
                 job.id, job.session_id, job.attempts)

        try:
            started = await self.sessions.transition(job.session_id, SessionStatus.scoring_in_progress)
        except Exception as e:
            LOG.exception("Could not mark session %s in progress", job.session_id)
            return await self._fail(job, SessionStatus.scoring_failed_db, f"Session update failed: {e}")

        if not started:
            msg = f"Session {job.session_id} is missing or not in a scorable status"
            await self._mark_job_failed(job, msg)
            self._alert_orphaned(job, msg)
            return self._outcome(job, "failed", f"Job {job.id} failed: {msg}")

        try:
            async with async_timeout.timeout(self.timeout_seconds):
                await self.engine.score(job.session_id, job.rubric_id)
        except asyncio.TimeoutError:
            return await self._fail(
                job,
                SessionStatus.scoring_failed_llm,
                f"Scoring timed out after {self.timeout_seconds:g}s",
            )
        except Exception as e:
            LOG.error("Scoring failed job=%s session=%s: %s", job.id, job.session_id, e)
            return await self._fail(job, classify_failure(e), str(e) or e.__class__.__name__)

        try:
            await self.sessions.transition(job.session_id, SessionStatus.scored_successfully)
        except Exception:
            # the score row exists; the session status write is what failed
            LOG.exception("Could not mark session %s scored", job.session_id)

        await self._send_results_email(job.session_id)

        try:
            await self.queue.complete(job.id)
        except Exception:
            LOG.exception("Could not mark job %s completed", job.id)

        LOG.info("Scoring job completed job=%s session=%s", job.id, job.session_id)
        return self._outcome(job, "completed", f"Job {job.id} completed successfully.")

    async def _fail(self, job: ScoringJob, status: SessionStatus, error: str) -> RunOutcome:
        try:
            await self.sessions.transition(job.session_id, status, error=error)
        except Exception:
            LOG.exception("Could not record %s for session %s", status.value, job.session_id)
        await self._mark_job_failed(job, error)
        return self._outcome(job, "failed", f"Job {job.id} failed: {error}")

    def _alert_orphaned(self, job: ScoringJob, error: str) -> None:
        # no session failure status was written, so nothing else would alert
        try:
            self.sessions.alerter.fire(
                "Scoring Job Not Run",
                f"Claimed job {job.id} was failed without scoring",
                [
                    {"name": "Job ID", "value": job.id, "inline": True},
                    {"name": "Session ID", "value": job.session_id, "inline": True},
                    {"name": "Error", "value": error, "inline": False},
                ],
            )
        except Exception:
            LOG.exception("Could not schedule alert for job %s", job.id)

    async def _mark_job_failed(self, job: ScoringJob, error: str) -> None:
        try:
            await self.queue.fail(job.id, error)
        except Exception:
            LOG.exception("Could not mark job %s failed", job.id)

    async def _send_results_email(self, session_id: str) -> None:
        """Best effort: nothing here may change the job's outcome."""
        try:
            session = await self.sessions.get(session_id)
            if session is None:
                LOG.warning("Session %s vanished before results email", session_id)
                return
            if session.results_email_sent:
                LOG.info("Results email already sent for session=%s; skipping", session_id)
                return
            if not session.email:
                LOG.warning("No email on session=%s; results email not sent", session_id)
                return

            await self.sessions.log_email_attempt(session_id, session.email)
            sent = await self.email_sender.send_results(session_id, session.email, session.user_name)
            if sent:
                await self.sessions.mark_results_emailed(session_id)
                LOG.info("Results email sent for session=%s", session_id)
            else:
                LOG.warning("Results email sender returned False for session=%s", session_id)
        except Exception as e:
            LOG.error("Error during results email for session=%s: %s", session_id, e)

    @staticmethod
    def _outcome(job: ScoringJob, status: str, message: str) -> RunOutcome:
        return RunOutcome(
            status=status,
            message=message,
            job_id=job.id,
            session_id=job.session_id,
            attempt=job.attempts,
        )
