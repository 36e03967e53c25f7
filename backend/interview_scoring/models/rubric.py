# backend/interview_scoring/models/rubric.py
from sqlalchemy import Column, DateTime, JSON, String, Text
from interview_scoring.db import Base, utc_now


class Rubric(Base):
    __tablename__ = "rubrics"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    definition = Column(JSON, nullable=False, default=dict)
    system_prompt = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
