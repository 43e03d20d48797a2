# backend/pitchcoach/models/call_upload.py

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean
from sqlalchemy.sql import func

from pitchcoach.database import Base


class CallUpload(Base):
    __tablename__ = "call_uploads"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    original_filename = Column(String(255))
    file_type = Column(String(100))
    file_size = Column(Integer, nullable=False, server_default="0")
    status = Column(String(50), index=True, server_default="uploaded")  # uploaded/processing/completed/failed
    error_message = Column(Text)

    transcript = Column(Text)

    # Raw critique JSON plus flattened columns for listing
    ai_analysis = Column(JSON)
    confidence_score = Column(Integer)
    objection_handling_scores = Column(JSON)
    strengths = Column(JSON)
    weaknesses = Column(JSON)
    better_responses = Column(JSON)
    psychological_insights = Column(Text)
    fallback_used = Column(Boolean, default=False)

    created_at = Column(DateTime, server_default=func.now())
    processed_at = Column(DateTime)
