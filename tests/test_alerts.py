import asyncio

from fakes import RecordingAlertSink
from interview_scoring.services.alerts import (
    Alerter,
    DiscordAlertSink,
    NullAlertSink,
    build_alert_sink,
)


class ExplodingSink:
    async def send(self, title, description, fields=None):
        raise RuntimeError("sink down")


def test_build_alert_sink():
    assert isinstance(build_alert_sink(""), NullAlertSink)
    sink = build_alert_sink("https://discord.example/webhook", username="Ops")
    assert isinstance(sink, DiscordAlertSink)
    assert sink.username == "Ops"


def test_discord_payload_shape():
    sink = DiscordAlertSink("https://discord.example/webhook", username="Monitor")
    payload = sink.build_payload("Scoring Failed: LLM", "details", [{"name": "a", "value": "b"}])
    assert payload["username"] == "Monitor"
    embed = payload["embeds"][0]
    assert embed["title"].endswith("Scoring Failed: LLM")
    assert embed["description"] == "details"
    assert embed["fields"] == [{"name": "a", "value": "b"}]
    assert embed["color"] == 0xFF0000


def test_fire_is_delivered_after_drain():
    sink = RecordingAlertSink()
    alerter = Alerter(sink)

    async def scenario():
        alerter.fire("t", "d")
        await alerter.drain()

    asyncio.run(scenario())
    assert sink.sent == [{"title": "t", "description": "d", "fields": []}]


def test_failing_sink_never_raises():
    alerter = Alerter(ExplodingSink())

    async def scenario():
        alerter.fire("t", "d")
        await alerter.drain()

    asyncio.run(scenario())


def test_fire_without_loop_is_dropped():
    sink = RecordingAlertSink()
    Alerter(sink).fire("t", "d")
    assert sink.sent == []


def test_unconfigured_discord_sink_is_noop():
    asyncio.run(DiscordAlertSink("").send("t", "d"))
