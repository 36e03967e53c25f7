# backend/interview_scoring/services/webhook_ingestion.py
import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

from ..models.session import SessionStatus
from .job_queue import JobQueue
from .session_store import SessionStore
from .signature import verify_signature

LOG = logging.getLogger("interview_scoring.webhooks")

MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0


@dataclass
class WebhookResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CallEndedEvent:
    conversation_id: str
    call_status: Optional[str]
    termination_reason: Optional[str]

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["CallEndedEvent"]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None
        conversation_id = data.get("conversation_id")
        if not conversation_id or not isinstance(conversation_id, str):
            return None
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        reason = metadata.get("termination_reason")
        status = data.get("status")
        return cls(
            conversation_id=conversation_id,
            call_status=str(status) if status is not None else None,
            termination_reason=str(reason) if reason is not None else None,
        )


@dataclass
class EnqueueResult:
    ok: bool
    attempts: int
    job_id: Optional[str] = None
    error: Optional[str] = None


async def enqueue_with_retry(
    submit: Callable[[], Awaitable[Any]],
    max_retries: int = MAX_RETRIES,
    initial_backoff: float = INITIAL_BACKOFF,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "",
) -> EnqueueResult:
    """
    Call ``submit`` up to ``max_retries`` times.

    An attempt succeeds when it returns a job carrying an id. Between attempts
    the loop waits ``initial_backoff * 2 ** (attempt - 1)`` seconds; there is
    no wait after the last one.
    """
    last_error = None
    attempts = max(1, int(max_retries))
    for attempt in range(1, attempts + 1):
        try:
            job = await submit()
            job_id = getattr(job, "id", None)
            if job_id:
                LOG.info("Enqueue succeeded %s job=%s (attempt %d/%d)", label, job_id, attempt, attempts)
                return EnqueueResult(ok=True, attempts=attempt, job_id=job_id)
            last_error = "enqueue returned no job"
        except Exception as e:
            last_error = str(e) or e.__class__.__name__

        LOG.warning("Enqueue attempt %d/%d failed %s: %s", attempt, attempts, label, last_error)
        if attempt < attempts:
            await sleep(initial_backoff * 2 ** (attempt - 1))

    return EnqueueResult(ok=False, attempts=attempts, error=last_error)


class WebhookIngestion:
    """End-of-call webhook: verify, record, decide, enqueue."""

    def __init__(
        self,
        sessions: SessionStore,
        queue: JobQueue,
        secret: Optional[str],
        signature_header: str = "elevenlabs-signature",
        tolerance_seconds: int = 300,
        completed_status: str = "done",
        graceful_end_reasons: Sequence[str] = (),
        require_graceful_end_reason: bool = False,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.sessions = sessions
        self.queue = queue
        self.secret = secret
        self.signature_header = signature_header
        self.tolerance_seconds = tolerance_seconds
        self.completed_status = completed_status
        self.graceful_end_reasons = {r.lower() for r in graceful_end_reasons}
        self.require_graceful_end_reason = require_graceful_end_reason
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.clock = clock
        self.sleep = sleep

    async def handle(self, headers: Mapping[str, str], raw_body: bytes) -> WebhookResult:
        LOG.info("Received call-ended webhook")
        if not verify_signature(
            headers,
            raw_body,
            self.secret,
            now=self.clock(),
            header_name=self.signature_header,
            tolerance_seconds=self.tolerance_seconds,
        ):
            LOG.warning("Webhook verification failed; ignoring request")
            return WebhookResult(401, {"error": "Signature verification failed"})

        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            LOG.warning("Webhook body is not valid JSON")
            return WebhookResult(400, {"error": "Malformed JSON body"})

        event = CallEndedEvent.from_payload(payload)
        if event is None:
            LOG.error("Webhook payload missing data.conversation_id")
            return WebhookResult(
                400, {"error": "Missing session identifier (data.conversation_id) in payload"}
            )

        try:
            return await self._process(event)
        except Exception as e:
            LOG.exception("Unexpected error processing webhook for session=%s", event.conversation_id)
            await self._record_crash(event.conversation_id, e)
            return WebhookResult(500, {"error": "Failed to process webhook", "detail": str(e)})

    async def _record_crash(self, session_id: str, exc: Exception) -> None:
        # only takes effect if the session was left in webhook_received
        try:
            await self.sessions.transition(
                session_id,
                SessionStatus.scoring_enqueue_failed,
                error=f"Webhook processing error: {exc}",
            )
        except Exception:
            LOG.exception("Could not record webhook failure for session=%s", session_id)

    def is_graceful_end(self, reason: Optional[str]) -> bool:
        return bool(reason) and reason.lower() in self.graceful_end_reasons

    def is_scorable(self, event: CallEndedEvent) -> bool:
        if event.call_status != self.completed_status:
            return False
        graceful = self.is_graceful_end(event.termination_reason)
        LOG.info("Session %s end reason=%r graceful=%s", event.conversation_id,
                 event.termination_reason, graceful)
        if self.require_graceful_end_reason:
            return graceful
        return True

    async def _process(self, event: CallEndedEvent) -> WebhookResult:
        session_id = event.conversation_id
        session = await self.sessions.get(session_id)
        if session is None:
            LOG.error("No session found for sessionId %s; scoring not triggered", session_id)
            return WebhookResult(200, {
                "message": "Webhook received, but no session found. Scoring not triggered.",
                "outcome": "unknown_session",
            })

        received = await self.sessions.transition(
            session_id,
            SessionStatus.webhook_received,
            webhook_call_status=event.call_status,
            webhook_end_reason=event.termination_reason,
        )
        if not received:
            LOG.info("Duplicate webhook for session=%s; already past ingestion", session_id)
            return WebhookResult(200, {
                "message": "Webhook already processed for this session.",
                "outcome": "duplicate",
            })

        if not self.is_scorable(event):
            LOG.info("Session %s ended with status=%s reason=%s; not scoring",
                     session_id, event.call_status, event.termination_reason)
            await self.sessions.transition(session_id, SessionStatus.webhook_received_not_scored)
            return WebhookResult(200, {
                "message": "Webhook received, scoring not applicable for this event.",
                "outcome": "not_scored",
            })

        result = await enqueue_with_retry(
            lambda: self.queue.enqueue(session_id, session.rubric_id),
            max_retries=self.max_retries,
            initial_backoff=self.initial_backoff,
            sleep=self.sleep,
            label=f"session={session_id}",
        )
        if not result.ok:
            LOG.error("Enqueue failed for session=%s after %d attempts: %s",
                      session_id, result.attempts, result.error)
            await self.sessions.transition(
                session_id,
                SessionStatus.scoring_enqueue_failed,
                error=f"Failed to enqueue scoring after {result.attempts} attempts: {result.error}",
            )
            # the decision is recorded; the sender should not redeliver
            return WebhookResult(200, {
                "message": "Webhook received, but scoring could not be enqueued.",
                "outcome": "enqueue_failed",
            })

        await self.sessions.transition(session_id, SessionStatus.scoring_enqueued)
        return WebhookResult(200, {
            "message": "Webhook received, scoring enqueued.",
            "outcome": "enqueued",
            "job_id": result.job_id,
        })
