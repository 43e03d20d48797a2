# backend/pitchcoach/analysis/scoring.py
"""
End-of-call scoring for simulated cold calls.

The LLM does the real grading; this module owns the result shape, the
participation gate in front of the LLM, and the keyword heuristics used when
the LLM is unavailable or returns something unparseable.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict

from pydantic import BaseModel, field_validator

SCORE_FIELDS = (
    "confidence_score",
    "objection_handling_score",
    "clarity_score",
    "persuasiveness_score",
    "tone_score",
    "overall_pitch_score",
    "closing_score",
    "overall_score",
)

PARTICIPATION_MIN_CHARS = 30
PARTICIPATION_MARKERS = ("hello", "hi", "website", "business", "call")

NO_PARTICIPATION_FEEDBACK = (
    "No sales conversation detected. You need to actively participate in the call "
    "by speaking to the prospect."
)


class AnalysisParseError(ValueError):
    """LLM output could not be turned into a JSON object."""


class CallScores(BaseModel):
    confidence_score: int = 0
    objection_handling_score: int = 0
    clarity_score: int = 0
    persuasiveness_score: int = 0
    tone_score: int = 0
    overall_pitch_score: int = 0
    closing_score: int = 0
    overall_score: int = 0
    successful_sale: bool = False
    feedback: str = ""

    @field_validator(*SCORE_FIELDS, mode="before")
    @classmethod
    def _clamp_score(cls, v: Any) -> int:
        if v is None or v == "":
            return 0
        try:
            value = round(float(v))
        except (TypeError, ValueError):
            raise ValueError(f"score must be numeric, got {v!r}")
        return max(0, min(10, int(value)))

    @field_validator("feedback", mode="before")
    @classmethod
    def _feedback_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (list, tuple)):
            return "\n".join(str(x) for x in v)
        return str(v)


def has_basic_participation(transcript: str) -> bool:
    """Cheap gate: did the rep say anything that looks like a call at all?"""
    text = transcript or ""
    lower = text.lower()
    return len(text) > PARTICIPATION_MIN_CHARS and any(m in lower for m in PARTICIPATION_MARKERS)


def no_participation_scores() -> CallScores:
    return CallScores(feedback=NO_PARTICIPATION_FEEDBACK)


def heuristic_scores(transcript: str) -> CallScores:
    """
    Keyword-based grading used when the LLM result is missing or invalid.

    Deliberately harsh: first attempts should land around 1-3.
    """
    t = (transcript or "").lower()

    has_intro = any(p in t for p in ("this is", "my name is", "calling from"))
    has_value_prop = (
        ("better" in t and "website" in t)
        or "improve your" in t
        or "help you" in t
        or "save you" in t
    )
    has_objection_handling = any(p in t for p in ("understand", "but what if", "let me explain"))
    has_closing = any(
        p in t for p in ("would you be interested", "can we schedule", "when would be good")
    )

    intro = 4 if has_intro else 1
    pitch = 5 if has_value_prop else 2
    objection = 6 if has_objection_handling else 1
    closing = 6 if has_closing else 1
    overall = int((intro + pitch + objection + closing) / 4 + 0.5)

    if overall < 3:
        band = (
            "This was a weak sales call. Focus on: 1) Professional introduction "
            "2) Clear value proposition 3) Asking for next steps"
        )
    elif overall < 6:
        band = "This was an average attempt. Improve your objection handling and closing technique."
    else:
        band = "Solid performance! Keep refining your approach."

    feedback = "\n".join(
        [
            "Sales Performance Analysis:",
            "INTRODUCTION: "
            + ("Good - You introduced yourself professionally" if has_intro else "Poor - No professional introduction detected"),
            "VALUE PROPOSITION: "
            + ("Fair - You mentioned improvements" if has_value_prop else "Poor - No clear value proposition offered"),
            "OBJECTION HANDLING: "
            + ("Good - You addressed concerns" if has_objection_handling else "Poor - No objection handling detected"),
            "CLOSING: "
            + ("Good - You attempted to advance the sale" if has_closing else "Poor - No closing attempt detected"),
            "",
            band,
        ]
    )

    return CallScores(
        confidence_score=intro,
        objection_handling_score=objection,
        clarity_score=pitch,
        persuasiveness_score=4 if has_value_prop else 1,
        tone_score=2,  # tone can't be judged from text
        overall_pitch_score=pitch,
        closing_score=closing,
        overall_score=overall,
        successful_sale=False,
        feedback=feedback,
    )


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_llm_json(text: str) -> Dict[str, Any]:
    """Parse a JSON object out of a chat completion, tolerating fences and chatter."""
    content = (text or "").strip()
    if not content:
        raise AnalysisParseError("empty completion")

    content = _FENCE_RE.sub("", content).strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        start = content.find("{")
        end = content.rfind("}")
        if start == -1 or end <= start:
            raise AnalysisParseError("no JSON object in completion")
        try:
            data = json.loads(content[start:end + 1])
        except json.JSONDecodeError as e:
            raise AnalysisParseError(f"invalid JSON in completion: {e}") from e

    if not isinstance(data, dict):
        raise AnalysisParseError("completion JSON is not an object")
    return data
