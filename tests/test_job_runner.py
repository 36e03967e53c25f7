import asyncio

from sqlalchemy import select

from fakes import FakeEmailSender, FakeScoringEngine, harness
from interview_scoring.models import JobStatus, Score
from interview_scoring.models import SessionStatus as S
from interview_scoring.services.job_runner import classify_failure
from interview_scoring.services.scoring import ScorePersistenceError, ScoringEngineError


async def _enqueued_session(h, session_id="sess-1", email="cand@example.com"):
    await h.sessions.create(session_id, "rub-1", rubric_name="Behavioral", email=email, user_name="Sam")
    await h.sessions.transition(session_id, S.webhook_received)
    await h.sessions.transition(session_id, S.scoring_enqueued)
    return await h.queue.enqueue(session_id, "rub-1")


async def _scores(h, session_id):
    async with h.db.session() as s:
        q = await s.execute(select(Score).where(Score.session_id == session_id))
        return list(q.scalars().all())


def test_no_jobs(database_url):
    async def scenario():
        async with harness(database_url) as h:
            outcome = await h.runner.run_once()
            assert outcome.status == "no_jobs"
            assert outcome.to_dict() == {"status": "no_jobs", "message": "No jobs to process"}

    asyncio.run(scenario())


def test_successful_scoring_sends_email_once(database_url):
    async def scenario():
        async with harness(database_url) as h:
            job = await _enqueued_session(h)
            outcome = await h.runner.run_once()

            assert outcome.status == "completed"
            assert outcome.job_id == job.id
            assert outcome.attempt == 1
            assert h.engine.calls == [("sess-1", "rub-1")]
            assert h.sender.calls == [("sess-1", "cand@example.com", "Sam")]

            session = await h.sessions.get("sess-1")
            assert session.status == S.scored_successfully.value
            assert session.results_email_sent is True
            assert len(await h.sessions.email_log("sess-1")) == 1
            assert len(await _scores(h, "sess-1")) == 1

            stored = await h.queue.get(job.id)
            assert stored.status == JobStatus.completed.value
            assert stored.processed_at is not None
            assert h.sink.sent == []

    asyncio.run(scenario())


def test_engine_failure_marks_llm_failure(database_url):
    async def scenario():
        engine = FakeScoringEngine(error=ScoringEngineError("rate limited"))
        async with harness(database_url, engine=engine) as h:
            job = await _enqueued_session(h)
            outcome = await h.runner.run_once()
            await h.alerter.drain()

            assert outcome.status == "failed"
            session = await h.sessions.get("sess-1")
            assert session.status == S.scoring_failed_llm.value
            assert session.status_error == "rate limited"
            assert session.results_email_sent is False
            assert h.sender.calls == []

            stored = await h.queue.get(job.id)
            assert stored.status == JobStatus.failed.value
            assert stored.status_error == "rate limited"
            assert stored.attempts == 1
            assert [a["title"] for a in h.sink.sent] == ["Scoring Failed: LLM"]

    asyncio.run(scenario())


def test_persistence_failure_marks_db_failure(database_url):
    async def scenario():
        engine = FakeScoringEngine(error=ScorePersistenceError("No transcripts found for sessionId: sess-1"))
        async with harness(database_url, engine=engine) as h:
            job = await _enqueued_session(h)
            await h.runner.run_once()
            await h.alerter.drain()

            session = await h.sessions.get("sess-1")
            assert session.status == S.scoring_failed_db.value
            assert "No transcripts" in session.status_error
            assert (await h.queue.get(job.id)).status == JobStatus.failed.value
            assert [a["title"] for a in h.sink.sent] == ["Scoring Failed: DB"]
            assert h.sender.calls == []

    asyncio.run(scenario())


def test_unclassified_error_treated_as_db_failure(database_url):
    async def scenario():
        engine = FakeScoringEngine(error=RuntimeError("surprise"))
        async with harness(database_url, engine=engine) as h:
            await _enqueued_session(h)
            await h.runner.run_once()
            assert (await h.sessions.get("sess-1")).status == S.scoring_failed_db.value

    asyncio.run(scenario())


def test_timeout_marks_llm_failure(database_url):
    async def scenario():
        engine = FakeScoringEngine(delay=1.0)
        async with harness(database_url, engine=engine, timeout_seconds=0.05) as h:
            job = await _enqueued_session(h)
            outcome = await h.runner.run_once()

            assert outcome.status == "failed"
            session = await h.sessions.get("sess-1")
            assert session.status == S.scoring_failed_llm.value
            assert "timed out" in session.status_error
            assert (await h.queue.get(job.id)).status == JobStatus.failed.value

    asyncio.run(scenario())


def test_email_failure_does_not_fail_job(database_url):
    async def scenario():
        sender = FakeEmailSender(error=RuntimeError("smtp down"))
        async with harness(database_url, sender=sender) as h:
            job = await _enqueued_session(h)
            outcome = await h.runner.run_once()

            assert outcome.status == "completed"
            session = await h.sessions.get("sess-1")
            assert session.status == S.scored_successfully.value
            assert session.results_email_sent is False
            assert len(await h.sessions.email_log("sess-1")) == 1
            assert (await h.queue.get(job.id)).status == JobStatus.completed.value

    asyncio.run(scenario())


def test_sender_returning_false_leaves_flag_unset(database_url):
    async def scenario():
        async with harness(database_url, sender=FakeEmailSender(result=False)) as h:
            await _enqueued_session(h)
            assert (await h.runner.run_once()).status == "completed"
            assert (await h.sessions.get("sess-1")).results_email_sent is False

    asyncio.run(scenario())


def test_email_skipped_when_already_sent(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await _enqueued_session(h)
            await h.sessions.mark_results_emailed("sess-1")
            assert (await h.runner.run_once()).status == "completed"
            assert h.sender.calls == []
            assert await h.sessions.email_log("sess-1") == []

    asyncio.run(scenario())


def test_email_skipped_without_address(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await _enqueued_session(h, email=None)
            assert (await h.runner.run_once()).status == "completed"
            assert h.sender.calls == []

    asyncio.run(scenario())


def test_job_claimed_before_enqueued_status_is_still_scored(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            await h.sessions.transition("sess-1", S.webhook_received)
            job = await h.queue.enqueue("sess-1", "rub-1")

            # the runner wins the race against ingestion's scoring_enqueued write
            outcome = await h.runner.run_once()
            assert not await h.sessions.transition("sess-1", S.scoring_enqueued)
            await h.alerter.drain()

            assert outcome.status == "completed"
            assert h.engine.calls == [("sess-1", "rub-1")]
            assert (await h.sessions.get("sess-1")).status == S.scored_successfully.value
            assert (await h.queue.get(job.id)).status == JobStatus.completed.value
            assert h.sink.sent == []

    asyncio.run(scenario())


def test_job_for_missing_session_fails_and_alerts(database_url):
    async def scenario():
        async with harness(database_url) as h:
            job = await h.queue.enqueue("ghost", "rub-1")
            outcome = await h.runner.run_once()
            await h.alerter.drain()

            assert outcome.status == "failed"
            assert h.engine.calls == []
            stored = await h.queue.get(job.id)
            assert stored.status == JobStatus.failed.value
            assert "ghost" in stored.status_error
            assert [a["title"] for a in h.sink.sent] == ["Scoring Job Not Run"]
            assert {"name": "Job ID", "value": job.id, "inline": True} in h.sink.sent[0]["fields"]

    asyncio.run(scenario())


def test_job_for_unfinished_session_fails_and_alerts(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            job = await h.queue.enqueue("sess-1", "rub-1")
            outcome = await h.runner.run_once()
            await h.alerter.drain()

            assert outcome.status == "failed"
            assert h.engine.calls == []
            assert (await h.sessions.get("sess-1")).status == S.started.value
            assert (await h.queue.get(job.id)).status == JobStatus.failed.value
            assert [a["title"] for a in h.sink.sent] == ["Scoring Job Not Run"]

    asyncio.run(scenario())


def test_requeued_job_can_succeed_after_failure(database_url):
    async def scenario():
        engine = FakeScoringEngine(error=ScoringEngineError("flaky"))
        async with harness(database_url, engine=engine) as h:
            job = await _enqueued_session(h)
            await h.runner.run_once()
            assert (await h.sessions.get("sess-1")).status == S.scoring_failed_llm.value

            engine.error = None
            engine.db = h.db
            await h.queue.requeue(job.id)
            outcome = await h.runner.run_once()

            assert outcome.status == "completed"
            assert outcome.attempt == 2
            session = await h.sessions.get("sess-1")
            assert session.status == S.scored_successfully.value
            assert session.status_error is None

    asyncio.run(scenario())


def test_classify_failure():
    assert classify_failure(ScoringEngineError("x")) == S.scoring_failed_llm
    assert classify_failure(asyncio.TimeoutError()) == S.scoring_failed_llm
    assert classify_failure(ScorePersistenceError("x")) == S.scoring_failed_db
    assert classify_failure(ValueError("x")) == S.scoring_failed_db
