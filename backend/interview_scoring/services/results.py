# backend/interview_scoring/services/results.py
from typing import List, Optional

from sqlalchemy import select

from ..db import Database
from ..models.score import Score
from ..models.transcript import TranscriptEntry


async def latest_score(db: Database, session_id: str) -> Optional[Score]:
    async with db.session() as s:
        q = await s.execute(
            select(Score)
            .where(Score.session_id == session_id)
            .order_by(Score.scored_at.desc(), Score.id.desc())
            .limit(1)
        )
        return q.scalars().first()


async def transcript_entries(db: Database, session_id: str) -> List[TranscriptEntry]:
    async with db.session() as s:
        q = await s.execute(
            select(TranscriptEntry)
            .where(TranscriptEntry.session_id == session_id)
            .order_by(TranscriptEntry.timestamp.asc(), TranscriptEntry.id.asc())
        )
        return list(q.scalars().all())


def transcript_text(entries: List[TranscriptEntry]) -> str:
    """Plain-text download form: ``ROLE: content`` blocks."""
    return "\n\n".join(f"{e.role.upper()}: {e.content}" for e in entries)
