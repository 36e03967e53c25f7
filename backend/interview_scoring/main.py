# backend/interview_scoring/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .bootstrap import build_services, configure_logging
from .config import Settings, settings as default_settings
from .db import Database
from .routers import jobs, sessions, webhooks
from .services.alerts import AlertingSink
from .services.mailer import EmailSender
from .services.scoring import ScoringEngine

log = logging.getLogger("interview_scoring.api")


def create_app(
    settings: Optional[Settings] = None,
    scoring_engine: Optional[ScoringEngine] = None,
    email_sender: Optional[EmailSender] = None,
    alert_sink: Optional[AlertingSink] = None,
    create_tables: bool = False,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database.from_settings(settings, application_name="interview-scoring-api")
        if create_tables:
            await db.create_all()
        app.state.services = build_services(
            settings,
            db,
            scoring_engine=scoring_engine,
            email_sender=email_sender,
            alert_sink=alert_sink,
        )
        log.info("API started")
        try:
            yield
        finally:
            await app.state.services.alerter.drain()
            await db.dispose()
            log.info("API stopped")

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.settings = settings

    # ---------------------------------------------------
    # CORS for the interview frontend
    # ---------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------------------------------
    # Health check
    # ---------------------------------------------------
    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    # ---------------------------------------------------
    # Routers
    # ---------------------------------------------------
    app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
    app.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
    app.include_router(sessions.router, prefix="/sessions", tags=["sessions"])

    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()

# ---------------------------------------------------
# Note:
# Start with `uvicorn interview_scoring.main:app`; the container CMD owns the
# server process.
# ---------------------------------------------------
