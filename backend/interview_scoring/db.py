# backend/interview_scoring/db.py

import logging
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import sqlalchemy
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import Settings

logger = logging.getLogger("interview_scoring.db")

# ---------------------------------------------------------
# Define Base (needed by Alembic)
# ---------------------------------------------------------
Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Database:
    """
    Owns the async engine and the session factory.

    Built once by the process bootstrap (API lifespan or worker main) and
    handed to every component that needs persistence.
    """

    def __init__(self, url: str, echo: bool = False, application_name: Optional[str] = None):
        self.url = url
        kwargs = {"echo": echo, "future": True}
        if url.startswith("sqlite"):
            # concurrent writers wait on the file lock instead of failing
            kwargs["connect_args"] = {"timeout": 30}
        else:
            kwargs.update(
                pool_pre_ping=True,
                pool_recycle=180,
                pool_size=5,
                max_overflow=10,
            )
            if application_name:
                kwargs["connect_args"] = {"server_settings": {"application_name": application_name}}
        self.engine: AsyncEngine = create_async_engine(url, **kwargs)
        self._session_maker = sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings, application_name: Optional[str] = None) -> "Database":
        return cls(settings.DATABASE_URL, echo=bool(settings.DEBUG), application_name=application_name)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_maker() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_maker() as session:
            async with session.begin():
                yield session

    async def create_all(self) -> None:
        """Create tables directly from the models (tests and local dev)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    # ---------------------------------------------------------
    # DB readiness check for container startup
    # ---------------------------------------------------------
    async def wait_for_db(self, max_retries: int = 8, delay: float = 2.0) -> bool:
        """
        Wait for DB to accept connections.
        """
        last_exc = None
        for attempt in range(1, max_retries + 1):
            try:
                async with self.engine.connect() as conn:
                    await conn.execute(sqlalchemy.text("SELECT 1"))
                    logger.info("Database connected (attempt %d)", attempt)
                    return True

            except OperationalError as e:
                last_exc = e
                msg = str(e.__cause__ or e)

                if "password authentication failed" in msg.lower():
                    logger.error("Database authentication failed: %s", msg)
                    raise

                logger.warning(
                    "DB not ready (attempt %d/%d): %s",
                    attempt, max_retries, msg
                )
                await asyncio.sleep(delay)

            except Exception as e:
                last_exc = e
                logger.exception(
                    "Unexpected DB connection error (attempt %d/%d): %s",
                    attempt, max_retries, e
                )
                await asyncio.sleep(delay)

        logger.error("Failed to connect to DB after %d retries. Last error: %s",
                     max_retries, last_exc)
        raise last_exc
