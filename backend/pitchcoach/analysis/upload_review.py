# backend/pitchcoach/analysis/upload_review.py
"""Critique schema for uploaded real-call recordings."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from pitchcoach.utils.logger import logger


class ObjectionHandlingScores(BaseModel):
    price: int = Field(ge=0, le=100)
    timing: int = Field(ge=0, le=100)
    trust: int = Field(ge=0, le=100)
    competitor: int = Field(ge=0, le=100)


class BetterResponses(BaseModel):
    price_objection: str = Field(min_length=1)
    timing_concern: str = Field(min_length=1)


class UploadAnalysis(BaseModel):
    confidence_score: int = Field(ge=0, le=100)
    objection_handling_scores: ObjectionHandlingScores
    strengths: List[str] = Field(min_length=1, max_length=10)
    weaknesses: List[str] = Field(min_length=1, max_length=10)
    better_responses: BetterResponses
    psychological_insights: str = Field(min_length=10)


UPLOAD_ANALYSIS_JSON_EXAMPLE = """{
  "confidence_score": 85,
  "objection_handling_scores": {"price": 75, "timing": 90, "trust": 80, "competitor": 85},
  "strengths": ["Built good rapport with the prospect", "Asked effective discovery questions"],
  "weaknesses": ["Didn't address price objection effectively", "Rushed to close without confirming value"],
  "better_responses": {
    "price_objection": "When they said price was too high, you could have said: '...'",
    "timing_concern": "Instead of pushing for immediate decision, try: '...'"
  },
  "psychological_insights": "Why the responses landed the way they did, and what to change."
}"""


def validate_upload_analysis(data: Any) -> Optional[UploadAnalysis]:
    """Return the parsed critique, or None when it doesn't meet the schema."""
    if not isinstance(data, dict):
        return None
    try:
        return UploadAnalysis.model_validate(data)
    except ValidationError as e:
        logger.warning(f"[Analysis] Upload critique failed validation: {e.error_count()} errors")
        return None


def fallback_upload_analysis() -> UploadAnalysis:
    return UploadAnalysis(
        confidence_score=50,
        objection_handling_scores=ObjectionHandlingScores(price=50, timing=50, trust=50, competitor=50),
        strengths=[
            "Demonstrated effort in engaging the prospect",
            "Showed persistence in the conversation",
        ],
        weaknesses=[
            "AI analysis failed - manual review recommended",
            "Technical parsing issues prevented detailed feedback",
        ],
        better_responses=BetterResponses(
            price_objection=(
                "I hear you on price. Can we look at the ROI and outcomes this enables "
                "over the next quarter?"
            ),
            timing_concern=(
                "What milestones would make the timing feel right, and how can we align the rollout?"
            ),
        ),
        psychological_insights=(
            "Fallback generated due to AI parsing issues. Focus on curiosity, validation, and "
            "value linking when objections arise. Consider re-analyzing this call."
        ),
    )


def analysis_columns(analysis: UploadAnalysis) -> Dict[str, Any]:
    """Flatten a critique into CallUpload column values."""
    data = analysis.model_dump()
    return {
        "ai_analysis": data,
        "confidence_score": data["confidence_score"],
        "objection_handling_scores": data["objection_handling_scores"],
        "strengths": data["strengths"],
        "weaknesses": data["weaknesses"],
        "better_responses": data["better_responses"],
        "psychological_insights": data["psychological_insights"],
    }
