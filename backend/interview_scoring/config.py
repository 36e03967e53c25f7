# backend/interview_scoring/config.py
from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    APP_NAME: str = "interview-scoring"

    POSTGRES_USER: str = os.environ.get("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.environ.get("POSTGRES_PASSWORD", "postgres")
    POSTGRES_DB: str = os.environ.get("POSTGRES_DB", "interview_scoring")
    POSTGRES_HOST: str = os.environ.get("POSTGRES_HOST", "db")
    POSTGRES_PORT: str = os.environ.get("POSTGRES_PORT", "5432")

    DATABASE_URL: str = os.environ.get(
        "DATABASE_URL",
        f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
    )

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Webhook verification
    WEBHOOK_SECRET: str = ""
    WEBHOOK_SIGNATURE_HEADER: str = "elevenlabs-signature"
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Scorability of an end-of-call event
    CALL_COMPLETED_STATUS: str = "done"
    GRACEFUL_END_REASONS: List[str] = [
        "client disconnected",
        "agent_completed_script",
        "call_ended_by_agent",
        "user_ended_call",
        "completed",
        "ended",
        "call_ended",
    ]
    REQUIRE_GRACEFUL_END_REASON: bool = False

    # Enqueue-with-retry
    ENQUEUE_MAX_RETRIES: int = 3
    ENQUEUE_INITIAL_BACKOFF_SECONDS: float = 1.0

    # Job runner
    MAX_JOB_ATTEMPTS: int = 3
    SCORING_TIMEOUT_SECONDS: float = 55.0
    JOB_TRIGGER_SECRET: str = ""
    WORKER_POLL_INTERVAL: float = 5.0

    # Scoring engine
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TEMPERATURE: float = 0.3

    # Results email
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = False
    SMTP_START_TLS: bool = True
    SENDER_EMAIL: str = "Interview Coach <results@example.com>"
    APP_URL: str = "http://localhost:3000"

    # Alerting (Discord-compatible incoming webhook)
    ALERT_WEBHOOK_URL: str = ""
    ALERT_USERNAME: str = "Scoring Monitor"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
