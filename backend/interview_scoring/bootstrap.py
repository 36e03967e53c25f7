# backend/interview_scoring/bootstrap.py
# Wires the database and services together for the API and the worker.
import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .db import Database
from .services.alerts import Alerter, AlertingSink, build_alert_sink
from .services.conversation_events import ConversationEvents
from .services.job_queue import JobQueue
from .services.job_runner import JobRunner
from .services.mailer import EmailSender, SMTPResultsEmailSender
from .services.scoring import LLMScoringEngine, ScoringEngine
from .services.session_store import SessionStore
from .services.webhook_ingestion import WebhookIngestion

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


@dataclass
class Services:
    db: Database
    alerter: Alerter
    sessions: SessionStore
    queue: JobQueue
    runner: JobRunner
    ingestion: WebhookIngestion
    events: ConversationEvents


def build_services(
    settings: Settings,
    db: Database,
    scoring_engine: Optional[ScoringEngine] = None,
    email_sender: Optional[EmailSender] = None,
    alert_sink: Optional[AlertingSink] = None,
) -> Services:
    alerter = Alerter(alert_sink or build_alert_sink(settings.ALERT_WEBHOOK_URL, settings.ALERT_USERNAME))
    sessions = SessionStore(db, alerter)
    queue = JobQueue(db, max_attempts=settings.MAX_JOB_ATTEMPTS)

    engine = scoring_engine or LLMScoringEngine(
        db,
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_MODEL,
        temperature=settings.OPENAI_TEMPERATURE,
    )
    sender = email_sender or SMTPResultsEmailSender(db, settings)

    runner = JobRunner(
        queue,
        sessions,
        engine,
        sender,
        timeout_seconds=settings.SCORING_TIMEOUT_SECONDS,
    )
    ingestion = WebhookIngestion(
        sessions,
        queue,
        secret=settings.WEBHOOK_SECRET,
        signature_header=settings.WEBHOOK_SIGNATURE_HEADER,
        tolerance_seconds=settings.WEBHOOK_TOLERANCE_SECONDS,
        completed_status=settings.CALL_COMPLETED_STATUS,
        graceful_end_reasons=settings.GRACEFUL_END_REASONS,
        require_graceful_end_reason=settings.REQUIRE_GRACEFUL_END_REASON,
        max_retries=settings.ENQUEUE_MAX_RETRIES,
        initial_backoff=settings.ENQUEUE_INITIAL_BACKOFF_SECONDS,
    )
    return Services(
        db=db,
        alerter=alerter,
        sessions=sessions,
        queue=queue,
        runner=runner,
        ingestion=ingestion,
        events=ConversationEvents(db, sessions),
    )
