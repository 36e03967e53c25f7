# backend/interview_scoring/services/job_queue.py
import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..db import Database, utc_now
from ..models.scoring_job import ACTIVE_JOB_STATUSES, JobStatus, ScoringJob

LOG = logging.getLogger("interview_scoring.jobs")

DEFAULT_MAX_ATTEMPTS = 3


class JobQueue:
    """
    Scoring jobs persisted in ``scoring_jobs``.

    Claiming is a single UPDATE ... RETURNING whose WHERE clause re-checks
    ``status = 'pending'``, so two runners can never both get the same row.
    """

    def __init__(self, db: Database, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.db = db
        self.max_attempts = max(1, int(max_attempts))

    async def enqueue(self, session_id: str, rubric_id: str) -> ScoringJob:
        """
        Create a pending job for the session.

        If the session already has a pending or processing job, that job is
        returned instead of a second one.
        """
        now = utc_now()
        job = ScoringJob(
            id=str(uuid.uuid4()),
            session_id=session_id,
            rubric_id=rubric_id,
            status=JobStatus.pending.value,
            attempts=0,
            max_attempts=self.max_attempts,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db.transaction() as s:
                s.add(job)
        except IntegrityError:
            existing = await self.active_for_session(session_id)
            if existing is None:
                raise
            LOG.info("Active job %s already exists for session=%s; not enqueuing another",
                     existing.id, session_id)
            return existing

        LOG.info("Job enqueued job=%s session=%s rubric=%s", job.id, session_id, rubric_id)
        return job

    async def claim_next(self) -> Optional[ScoringJob]:
        """Atomically move the oldest claimable job to processing and return it."""
        oldest = (
            select(ScoringJob.id)
            .where(ScoringJob.status == JobStatus.pending.value)
            .where(ScoringJob.attempts < ScoringJob.max_attempts)
            .order_by(ScoringJob.created_at.asc(), ScoringJob.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(ScoringJob)
            .where(ScoringJob.id == oldest)
            .where(ScoringJob.status == JobStatus.pending.value)
            .values(
                status=JobStatus.processing.value,
                attempts=ScoringJob.attempts + 1,
                updated_at=utc_now(),
            )
            .returning(ScoringJob)
            .execution_options(synchronize_session=False)
        )
        async with self.db.transaction() as s:
            res = await s.execute(stmt)
            job = res.scalars().first()

        if job is not None:
            LOG.info("Job claimed job=%s session=%s attempt=%d/%d",
                     job.id, job.session_id, job.attempts, job.max_attempts)
        return job

    async def complete(self, job_id: str) -> bool:
        now = utc_now()
        return await self._finish(job_id, values={
            "status": JobStatus.completed.value,
            "status_error": None,
            "processed_at": now,
            "updated_at": now,
        })

    async def fail(self, job_id: str, error: str) -> bool:
        now = utc_now()
        return await self._finish(job_id, values={
            "status": JobStatus.failed.value,
            "status_error": error,
            "processed_at": now,
            "updated_at": now,
        })

    async def _finish(self, job_id: str, values: dict) -> bool:
        stmt = (
            update(ScoringJob)
            .where(ScoringJob.id == job_id)
            .where(ScoringJob.status == JobStatus.processing.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.db.transaction() as s:
            res = await s.execute(stmt)
            updated = bool(res.rowcount)
        if not updated:
            LOG.warning("Job %s was not processing; %s not recorded", job_id, values["status"])
        return updated

    async def requeue(self, job_id: str) -> Optional[ScoringJob]:
        """Put a failed job back to pending while it still has attempts left."""
        stmt = (
            update(ScoringJob)
            .where(ScoringJob.id == job_id)
            .where(ScoringJob.status == JobStatus.failed.value)
            .where(ScoringJob.attempts < ScoringJob.max_attempts)
            .values(status=JobStatus.pending.value, updated_at=utc_now())
            .returning(ScoringJob)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.db.transaction() as s:
                res = await s.execute(stmt)
                job = res.scalars().first()
        except IntegrityError:
            LOG.warning("Job %s not requeued: session already has an active job", job_id)
            return None
        if job is not None:
            LOG.info("Job requeued job=%s session=%s attempts=%d/%d",
                     job.id, job.session_id, job.attempts, job.max_attempts)
        return job

    async def get(self, job_id: str) -> Optional[ScoringJob]:
        async with self.db.session() as s:
            return await s.get(ScoringJob, job_id)

    async def active_for_session(self, session_id: str) -> Optional[ScoringJob]:
        async with self.db.session() as s:
            q = await s.execute(
                select(ScoringJob)
                .where(ScoringJob.session_id == session_id)
                .where(ScoringJob.status.in_(ACTIVE_JOB_STATUSES))
            )
            return q.scalars().first()

    async def list_for_session(self, session_id: str) -> List[ScoringJob]:
        async with self.db.session() as s:
            q = await s.execute(
                select(ScoringJob)
                .where(ScoringJob.session_id == session_id)
                .order_by(ScoringJob.created_at.asc())
            )
            return list(q.scalars().all())
