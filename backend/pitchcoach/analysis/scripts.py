# backend/pitchcoach/analysis/scripts.py
"""
Cold-call script writing: the business brief, script critique schema,
generated objection/response pairs, and the offline fallbacks used when the
LLM is unavailable.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from pitchcoach.utils.logger import logger

ObjectionBatch = Literal["initial", "additional"]

# How many objection/response pairs each request type asks for
OBJECTION_BATCH_SIZES: Dict[str, int] = {"initial": 3, "additional": 10}

SCRIPT_SCORE_FIELDS = (
    "overall_score",
    "clarity_score",
    "persuasiveness_score",
    "structure_score",
    "tone_score",
    "call_to_action_score",
)


class ScriptBrief(BaseModel):
    """What the rep tells us about the business they are calling for."""

    business_type: str
    product_service: str
    target_audience: str
    call_objective: str
    key_benefits: Optional[str] = None
    tone_preference: Optional[str] = None
    common_objections: Optional[str] = None
    company_name: Optional[str] = None

    @field_validator("business_type", "product_service", "target_audience", "call_objective", mode="before")
    @classmethod
    def _required_text(cls, v: Any) -> str:
        text = str(v).strip() if v is not None else ""
        if not text:
            raise ValueError("is required")
        return text

    @field_validator("key_benefits", "tone_preference", "common_objections", "company_name", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    def profile(self) -> Dict[str, str]:
        return {
            "business_type": self.business_type,
            "product_service": self.product_service,
            "target_audience": self.target_audience,
            "call_objective": self.call_objective,
        }


def _as_list(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [v] if v.strip() else []
    if isinstance(v, (list, tuple)):
        return [str(x).strip() for x in v if str(x).strip()]
    raise ValueError(f"expected a list of strings, got {type(v).__name__}")


class ScriptAnalysis(BaseModel):
    overall_score: int
    clarity_score: int
    persuasiveness_score: int
    structure_score: int
    tone_score: int
    call_to_action_score: int
    strengths: List[str] = Field(min_length=1)
    weaknesses: List[str] = Field(min_length=1)
    detailed_feedback: str = Field(min_length=1)
    suggested_improvements: List[str] = Field(default_factory=list)
    best_practices: List[str] = Field(default_factory=list)

    @field_validator(*SCRIPT_SCORE_FIELDS, mode="before")
    @classmethod
    def _clamp_score(cls, v: Any) -> int:
        try:
            value = round(float(v))
        except (TypeError, ValueError):
            raise ValueError(f"score must be numeric, got {v!r}")
        return max(1, min(10, int(value)))

    @field_validator("strengths", "weaknesses", "suggested_improvements", "best_practices", mode="before")
    @classmethod
    def _string_list(cls, v: Any) -> List[str]:
        return _as_list(v)


SCRIPT_ANALYSIS_JSON_EXAMPLE = """{
  "overall_score": 7,
  "strengths": ["Opens with a specific reason for the call"],
  "weaknesses": ["Value proposition arrives too late"],
  "clarity_score": 7,
  "persuasiveness_score": 6,
  "structure_score": 8,
  "tone_score": 7,
  "call_to_action_score": 5,
  "detailed_feedback": "What works, what doesn't, and what to change first.",
  "suggested_improvements": ["Move the value proposition into the first 20 seconds"],
  "best_practices": ["Ask one discovery question before pitching"]
}"""


def validate_script_analysis(data: Any) -> Optional[ScriptAnalysis]:
    if not isinstance(data, dict):
        return None
    try:
        return ScriptAnalysis.model_validate(data)
    except ValidationError as e:
        logger.warning(f"[Scripts] Script critique failed validation: {e.error_count()} errors")
        return None


def fallback_script_analysis() -> ScriptAnalysis:
    return ScriptAnalysis(
        overall_score=5,
        clarity_score=5,
        persuasiveness_score=5,
        structure_score=5,
        tone_score=5,
        call_to_action_score=5,
        strengths=["Script provided for analysis"],
        weaknesses=["Analysis format needs improvement"],
        detailed_feedback=(
            "The AI analysis encountered a formatting issue, but your script has been reviewed. "
            "Consider refining your opening, strengthening your value proposition, and ensuring "
            "a clear call to action."
        ),
        suggested_improvements=[
            "Improve opening hook",
            "Clarify value proposition",
            "Strengthen call to action",
        ],
        best_practices=[
            "Start with a compelling hook",
            "Focus on customer benefits",
            "Include clear next steps",
        ],
    )


class ScriptObjection(BaseModel):
    objection: str = Field(min_length=1)
    response: str = Field(min_length=1)


def validate_script_objections(data: Any, limit: int) -> List[ScriptObjection]:
    """
    Pull objection/response pairs out of an LLM reply.

    Malformed entries are dropped; at most `limit` pairs are returned.
    """
    items = data.get("objections") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []

    pairs: List[ScriptObjection] = []
    skipped = 0
    for item in items:
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            pairs.append(
                ScriptObjection(
                    objection=str(item.get("objection") or "").strip(),
                    response=str(item.get("response") or "").strip(),
                )
            )
        except ValidationError:
            skipped += 1
            continue
        if len(pairs) >= limit:
            break

    if skipped:
        logger.debug(f"[Scripts] Dropped {skipped} malformed objection entries")
    return pairs


def template_script(brief: ScriptBrief) -> str:
    """Offline script built from the brief, using the section headings the LLM prompt asks for."""
    company = brief.company_name or "[Company Name]"
    benefits = brief.key_benefits or f"{brief.product_service} that fits how {brief.target_audience} already work"

    sections = [
        (
            "Opening",
            f"Hi, this is [Your Name] with {company}. I know I'm calling out of the blue, "
            f"so I'll be brief. Do you have thirty seconds?",
        ),
        (
            "Introduction & Purpose",
            f"We work with {brief.target_audience} in {brief.business_type}, and the reason for my call "
            f"is simple: I'd like to {brief.call_objective.rstrip('.').lower()}.",
        ),
        (
            "Value Proposition",
            f"We provide {brief.product_service}. What our customers notice first is {benefits.rstrip('.')}.",
        ),
        (
            "Discovery",
            "How are you handling this today? What would you change about it if you could? "
            "Who else would weigh in on a decision like this?",
        ),
        (
            "Handling Objections",
            "That's fair, and I hear that a lot. Can I ask what's behind it? "
            + (
                f"Others have raised {brief.common_objections.rstrip('.')}, and here's how we handled it for them."
                if brief.common_objections
                else "Usually it comes down to timing or budget, and both are worth a short conversation."
            ),
        ),
        (
            "Close",
            f"Based on what you've told me, the next step would be to {brief.call_objective.rstrip('.').lower()}. "
            "Does Tuesday or Thursday work better for you?",
        ),
    ]
    return "\n\n".join(f"{title.upper()}:\n{body}" for title, body in sections)
