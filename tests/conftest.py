import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT / "backend", Path(__file__).resolve().parent):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from fakes import TRIGGER_SECRET, WEBHOOK_SECRET
from interview_scoring.config import Settings


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'scoring.db'}"


@pytest.fixture
def settings(database_url):
    return Settings(
        DATABASE_URL=database_url,
        WEBHOOK_SECRET=WEBHOOK_SECRET,
        JOB_TRIGGER_SECRET=TRIGGER_SECRET,
        ENQUEUE_INITIAL_BACKOFF_SECONDS=0.0,
        SCORING_TIMEOUT_SECONDS=5.0,
        SMTP_HOST="",
        ALERT_WEBHOOK_URL="",
    )
