import asyncio

import pytest

from fakes import harness
from interview_scoring.models import SessionStatus as S
from interview_scoring.services.session_store import (
    TRANSITIONS,
    SessionExistsError,
    is_terminal_status,
    status_label,
)


def test_create_and_get(database_url):
    async def scenario():
        async with harness(database_url) as h:
            created = await h.sessions.create("sess-1", "rub-1", rubric_name="Behavioral", email="a@b.co")
            assert created.status == S.started.value
            loaded = await h.sessions.get("sess-1")
            assert loaded.rubric_id == "rub-1"
            assert loaded.email == "a@b.co"
            assert loaded.results_email_sent is False
            assert await h.sessions.get("missing") is None

    asyncio.run(scenario())


def test_create_duplicate_raises(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            with pytest.raises(SessionExistsError):
                await h.sessions.create("sess-1", "rub-2")

    asyncio.run(scenario())


def test_happy_path_transitions(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            for target in (S.webhook_received, S.scoring_enqueued, S.scoring_in_progress, S.scored_successfully):
                assert await h.sessions.transition("sess-1", target)
            session = await h.sessions.get("sess-1")
            assert session.status == S.scored_successfully.value
            assert session.status_error is None

    asyncio.run(scenario())


def test_illegal_transitions_rejected(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            assert not await h.sessions.transition("sess-1", S.scoring_in_progress)
            assert not await h.sessions.transition("sess-1", S.scored_successfully)
            assert (await h.sessions.get("sess-1")).status == S.started.value

            for target in (S.webhook_received, S.scoring_enqueued, S.scoring_in_progress, S.scored_successfully):
                await h.sessions.transition("sess-1", target)
            # a scored session never goes back to ingestion
            assert not await h.sessions.transition("sess-1", S.webhook_received)
            assert not await h.sessions.transition("sess-1", S.scoring_in_progress)
            assert (await h.sessions.get("sess-1")).status == S.scored_successfully.value

    asyncio.run(scenario())


def test_transition_unknown_session(database_url):
    async def scenario():
        async with harness(database_url) as h:
            assert not await h.sessions.transition("nope", S.webhook_received)

    asyncio.run(scenario())


def test_webhook_fields_recorded(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            await h.sessions.transition(
                "sess-1", S.webhook_received, webhook_call_status="done", webhook_end_reason="client disconnected"
            )
            session = await h.sessions.get("sess-1")
            assert session.webhook_call_status == "done"
            assert session.webhook_end_reason == "client disconnected"

    asyncio.run(scenario())


def test_failure_status_records_error_and_alerts(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            for target in (S.webhook_received, S.scoring_enqueued, S.scoring_in_progress):
                await h.sessions.transition("sess-1", target)
            assert await h.sessions.transition("sess-1", S.scoring_failed_llm, error="model exploded")
            await h.alerter.drain()

            session = await h.sessions.get("sess-1")
            assert session.status == S.scoring_failed_llm.value
            assert session.status_error == "model exploded"
            assert len(h.sink.sent) == 1
            assert h.sink.sent[0]["title"] == "Scoring Failed: LLM"
            assert {"name": "Session ID", "value": "sess-1", "inline": True} in h.sink.sent[0]["fields"]

            # retrying clears the old error
            assert await h.sessions.transition("sess-1", S.scoring_in_progress)
            assert (await h.sessions.get("sess-1")).status_error is None

    asyncio.run(scenario())


def test_mark_results_emailed_only_once(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            assert await h.sessions.mark_results_emailed("sess-1")
            assert not await h.sessions.mark_results_emailed("sess-1")
            assert (await h.sessions.get("sess-1")).results_email_sent is True

    asyncio.run(scenario())


def test_email_log_appends(database_url):
    async def scenario():
        async with harness(database_url) as h:
            await h.sessions.create("sess-1", "rub-1")
            await h.sessions.log_email_attempt("sess-1", "a@b.co")
            await h.sessions.log_email_attempt("sess-1", "c@d.co")
            assert [e.email for e in await h.sessions.email_log("sess-1")] == ["a@b.co", "c@d.co"]

    asyncio.run(scenario())


def test_every_status_has_a_label():
    for status in S:
        assert status_label(status.value) != "Unknown"
    assert status_label("bogus") == "Unknown"
    assert status_label(S.scoring_failed_db.value) == status_label(S.scoring_enqueue_failed.value)


def test_started_is_only_an_initial_status():
    assert S.started not in TRANSITIONS
    assert all(S.scored_successfully not in sources for sources in TRANSITIONS.values())


def test_scoring_can_start_straight_from_webhook_received():
    assert S.webhook_received in TRANSITIONS[S.scoring_in_progress]


def test_is_terminal_status():
    assert is_terminal_status(S.scored_successfully.value)
    assert is_terminal_status(S.scoring_failed_llm.value)
    assert not is_terminal_status(S.scoring_enqueued.value)
    assert not is_terminal_status(S.started.value)
    assert not is_terminal_status("bogus")
