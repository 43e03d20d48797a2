# backend/pitchcoach/models/call.py

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from sqlalchemy.sql import func

from pitchcoach.database import Base


class Call(Base):
    __tablename__ = "calls"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Voice SDK call id, when the call went through the hosted agent
    provider_call_id = Column(String(100), index=True)
    prospect_personality = Column(String(50))
    difficulty_level = Column(Integer)

    status = Column(String(50), index=True, server_default="started")  # started/ended/completed/failed
    duration_seconds = Column(Integer, nullable=False, server_default="0")

    transcript = Column(Text)
    cleaned_transcript = Column(Text)
    transcript_checksum = Column(String(20))
    speakers_inferred = Column(Boolean, default=False)

    # Scores (0-10)
    confidence_score = Column(Integer)
    objection_handling_score = Column(Integer)
    clarity_score = Column(Integer)
    persuasiveness_score = Column(Integer)
    tone_score = Column(Integer)
    overall_pitch_score = Column(Integer)
    closing_score = Column(Integer)
    overall_score = Column(Integer)
    successful_sale = Column(Boolean, default=False)

    ai_feedback = Column(Text)
    analysis_source = Column(String(20))  # llm/heuristic/no_participation

    created_at = Column(DateTime, server_default=func.now())
    ended_at = Column(DateTime)
    analyzed_at = Column(DateTime)
