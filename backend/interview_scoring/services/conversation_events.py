# backend/interview_scoring/services/conversation_events.py
# Events pushed by the voice client while an interview is running.
import logging
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..db import Database, utc_now
from ..models.transcript import TranscriptEntry
from .session_store import SessionStore

LOG = logging.getLogger("interview_scoring.events")


class ConnectEvent(BaseModel):
    type: Literal["connect"]


class DisconnectEvent(BaseModel):
    type: Literal["disconnect"]
    reason: Optional[str] = None


class TranscriptEvent(BaseModel):
    type: Literal["transcript"]
    role: Literal["user", "agent"]
    content: str
    timestamp: Optional[datetime] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be empty")
        return v


class InterruptionEvent(BaseModel):
    type: Literal["interruption"]
    event_id: Optional[int] = None


class ErrorEvent(BaseModel):
    type: Literal["error"]
    message: str = ""


ConversationEvent = Annotated[
    Union[ConnectEvent, DisconnectEvent, TranscriptEvent, InterruptionEvent, ErrorEvent],
    Field(discriminator="type"),
]


class SessionNotFoundError(Exception):
    pass


class ConversationEvents:
    def __init__(self, db: Database, sessions: SessionStore):
        self.db = db
        self.sessions = sessions

    async def ingest(self, session_id: str, event: ConversationEvent) -> dict:
        session = await self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        if isinstance(event, TranscriptEvent):
            entry = TranscriptEntry(
                session_id=session_id,
                role=event.role,
                content=event.content,
                timestamp=event.timestamp or utc_now(),
            )
            async with self.db.transaction() as s:
                s.add(entry)
            LOG.debug("Transcript line stored session=%s role=%s", session_id, event.role)
            return {"accepted": True, "type": event.type, "transcript_id": entry.id}

        if isinstance(event, ErrorEvent):
            LOG.warning("Voice client error session=%s: %s", session_id, event.message)
        elif isinstance(event, DisconnectEvent):
            LOG.info("Voice client disconnected session=%s reason=%s", session_id, event.reason)
        else:
            LOG.info("Voice client event session=%s type=%s", session_id, event.type)
        return {"accepted": True, "type": event.type}
