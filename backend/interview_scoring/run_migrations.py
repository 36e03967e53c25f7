# backend/interview_scoring/run_migrations.py (wraps alembic call with wait_for_db)
import asyncio
import logging
import os

from alembic import command
from alembic.config import Config

from interview_scoring.config import settings
from interview_scoring.db import Database

log = logging.getLogger("run_migrations")

ALEMBIC_INI = os.environ.get(
    "ALEMBIC_CONFIG",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "alembic.ini"),
)


async def wait_for_database():
    db = Database.from_settings(settings, application_name="interview-scoring-migrations")
    try:
        # will raise if auth fails
        await db.wait_for_db(max_retries=8, delay=2.0)
    finally:
        await db.dispose()


def run_migrations():
    asyncio.run(wait_for_database())
    cfg = Config(ALEMBIC_INI)
    log.info("Upgrading database to head using %s", ALEMBIC_INI)
    command.upgrade(cfg, "head")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_migrations()
