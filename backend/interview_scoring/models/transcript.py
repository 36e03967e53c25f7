# backend/interview_scoring/models/transcript.py
from sqlalchemy import Column, DateTime, Integer, String, Text
from interview_scoring.db import Base, utc_now


class TranscriptEntry(Base):
    __tablename__ = "transcripts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String, index=True, nullable=False)
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now)
