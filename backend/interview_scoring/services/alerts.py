# backend/interview_scoring/services/alerts.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Set

import httpx

LOG = logging.getLogger("interview_scoring.alerts")

AlertFields = List[Dict[str, object]]


class AlertingSink(Protocol):
    async def send(self, title: str, description: str, fields: Optional[AlertFields] = None) -> None:
        ...


class NullAlertSink:
    async def send(self, title: str, description: str, fields: Optional[AlertFields] = None) -> None:
        LOG.debug("Alert skipped (no sink configured): %s", title)


class DiscordAlertSink:
    """Posts an embed to a Discord-compatible incoming webhook."""

    def __init__(self, webhook_url: str, username: str = "Scoring Monitor", timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.username = username
        self.timeout = timeout

    def build_payload(self, title: str, description: str, fields: Optional[AlertFields] = None) -> dict:
        return {
            "username": self.username,
            "embeds": [
                {
                    "title": f"\U0001F6A8 {title}",
                    "description": description,
                    "color": 0xFF0000,
                    "fields": fields or [],
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            ],
        }

    async def send(self, title: str, description: str, fields: Optional[AlertFields] = None) -> None:
        if not self.webhook_url:
            LOG.warning("Alert webhook URL not configured; alert %r not sent", title)
            return

        payload = self.build_payload(title, description, fields)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(self.webhook_url, json=payload)
            if r.status_code >= 400:
                LOG.error("Alert %r rejected: %s %s", title, r.status_code, r.text)
            else:
                LOG.info("Alert sent: %s", title)
        except Exception as e:
            LOG.error("Alert %r failed: %s", title, e)


class Alerter:
    """
    Fire-and-forget wrapper around an AlertingSink.

    ``fire`` schedules the send and returns immediately; ``drain`` waits for
    whatever is still in flight (shutdown and tests).
    """

    def __init__(self, sink: Optional[AlertingSink] = None):
        self.sink = sink or NullAlertSink()
        self._pending: Set[asyncio.Task] = set()

    def fire(self, title: str, description: str, fields: Optional[AlertFields] = None) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._safe_send(title, description, fields))
        except RuntimeError:
            LOG.warning("No running loop; alert %r dropped", title)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _safe_send(self, title: str, description: str, fields: Optional[AlertFields]) -> None:
        try:
            await self.sink.send(title, description, fields)
        except Exception:
            LOG.exception("Alert sink raised for %r", title)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_alert_sink(webhook_url: str, username: str = "Scoring Monitor") -> AlertingSink:
    if not webhook_url:
        return NullAlertSink()
    return DiscordAlertSink(webhook_url, username=username)
