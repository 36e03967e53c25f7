# backend/interview_scoring/models/score.py
from sqlalchemy import Column, DateTime, Integer, JSON, String, Text
from interview_scoring.db import Base, utc_now


class Score(Base):
    __tablename__ = "scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String, index=True, nullable=False)
    rubric_id = Column(String, nullable=False)
    rubric_name = Column(String, nullable=True)
    llm_response = Column(JSON, nullable=False, default=dict)
    transcript_text = Column(Text, nullable=True)
    model_used = Column(String, nullable=True)
    scored_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
