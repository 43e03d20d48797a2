# backend/pitchcoach/pipelines/script_pipeline.py
from __future__ import annotations

from typing import Any, Dict, Optional

from pitchcoach.analysis.scripts import (
    OBJECTION_BATCH_SIZES,
    SCRIPT_ANALYSIS_JSON_EXAMPLE,
    ScriptAnalysis,
    ScriptBrief,
    fallback_script_analysis,
    template_script,
    validate_script_analysis,
    validate_script_objections,
)
from pitchcoach.services.openai_service import LLMUnavailableError, OpenAIService
from pitchcoach.utils.logger import logger


class ScriptInputError(ValueError):
    """Script request is missing the text it needs."""


class ScriptGenerationError(RuntimeError):
    """The LLM answered, but nothing usable could be taken from the answer."""


# -----------------------------
# Prompts
# -----------------------------

WRITER_SYSTEM = (
    "You are a professional sales script writer and cold calling expert. Create personalized, "
    "high-converting sales scripts that sound natural and conversational. Focus on results and "
    "practical application."
)

CRITIC_SYSTEM = (
    "You are a professional sales coach and communication expert. Provide detailed, actionable "
    "feedback on sales scripts and pitches. Always respond with valid JSON only."
)

REWRITE_SYSTEM = (
    "You are a professional sales coach and copywriter. Rewrite sales scripts to be more effective "
    "while maintaining the original intent. Respond with only the rewritten script, no additional "
    "commentary."
)

OBJECTIONS_SYSTEM = (
    "You are an expert sales coach who specializes in objection handling. Provide realistic "
    "objections customers might have and effective responses to overcome them. Always return strict JSON."
)


def _brief_lines(brief: ScriptBrief) -> str:
    return "\n".join(
        [
            f"- Business Type/Industry: {brief.business_type}",
            f"- Product/Service: {brief.product_service}",
            f"- Target Audience: {brief.target_audience}",
            f"- Call Objective: {brief.call_objective}",
            f"- Key Benefits/Value Proposition: {brief.key_benefits or 'Not specified'}",
            f"- Tone Preference: {brief.tone_preference or 'Professional and friendly'}",
            f"- Common Objections: {brief.common_objections or 'Not specified'}",
            f"- Company Name: {brief.company_name or '[Company Name]'}",
        ]
    )


def _generate_prompt(brief: ScriptBrief) -> str:
    return f"""
Create a personalized, high-converting cold calling script for this business.

BUSINESS DETAILS:
{_brief_lines(brief)}

REQUIREMENTS:
1. 60-90 seconds long when spoken
2. A strong opening that earns attention within 10 seconds
3. The value proposition stated early
4. 2-3 discovery questions
5. Proactive handling of the common objections
6. A clear call to action matching the call objective
7. The preferred tone throughout; conversational, never robotic

Label the sections: Opening, Introduction & Purpose, Value Proposition, Discovery,
Handling Objections, Close.

Return ONLY the script text.
""".strip()


def _analyze_prompt(script: str) -> str:
    return f"""
Analyze the following sales script and provide detailed feedback.

SCRIPT TO ANALYZE:
\"\"\"
{script}
\"\"\"

Focus on opening and hook strength, value proposition clarity, objection handling potential,
flow and structure, closing effectiveness, and tone. Scores are 1-10.

Respond with JSON in exactly this shape:
{SCRIPT_ANALYSIS_JSON_EXAMPLE}
""".strip()


def _rewrite_prompt(script: str, analysis: ScriptAnalysis) -> str:
    return f"""
Rewrite this sales script based on the analysis feedback below.

ORIGINAL SCRIPT:
\"\"\"
{script}
\"\"\"

ANALYSIS FEEDBACK:
- Overall Score: {analysis.overall_score}/10
- Weaknesses: {', '.join(analysis.weaknesses)}
- Suggested Improvements: {', '.join(analysis.suggested_improvements) or 'None given'}
- Best Practices to Implement: {', '.join(analysis.best_practices) or 'None given'}
- Detailed Feedback: {analysis.detailed_feedback}

Address every weakness and suggested improvement while keeping the core message and intent.
The result needs a strong opening, a clear value proposition and a compelling call to action.

Return ONLY the rewritten script.
""".strip()


def _objections_prompt(brief: ScriptBrief, count: int) -> str:
    known = f"\nCommon objections already known: {brief.common_objections}" if brief.common_objections else ""
    return f"""
Based on this business context, generate {count} realistic customer objections and effective responses.

{_brief_lines(brief)}{known}

Make the objections specific to this business and audience, not generic. Responses should be
persuasive but natural.

Return ONLY JSON with this shape:
{{
  "objections": [
    {{"objection": "what the prospect says", "response": "the recommended reply"}}
  ]
}}
""".strip()


# -----------------------------
# Operations
# -----------------------------

async def generate_script(brief: ScriptBrief, svc: Optional[OpenAIService] = None) -> Dict[str, Any]:
    """Write a cold-call script for the brief; falls back to a template when the LLM is unavailable."""
    svc = svc or OpenAIService()

    try:
        script = await svc.chat_text(WRITER_SYSTEM, _generate_prompt(brief), max_tokens=2000, temperature=0.7)
        fallback_used = False
    except LLMUnavailableError as e:
        logger.warning(f"[Scripts] LLM unavailable for script generation, using template: {e}")
        script = template_script(brief)
        fallback_used = True

    logger.info(f"[Scripts] Generated {len(script)} char script (fallback_used={fallback_used})")
    return {
        "script": script,
        "fallback_used": fallback_used,
        "business_profile": brief.profile(),
    }


async def analyze_script(script: str, svc: Optional[OpenAIService] = None) -> Dict[str, Any]:
    text = (script or "").strip()
    if not text:
        raise ScriptInputError("Script content is required")

    svc = svc or OpenAIService()
    analysis = None
    try:
        data = await svc.chat_json(CRITIC_SYSTEM, _analyze_prompt(text), max_tokens=2000, temperature=0.7)
        analysis = validate_script_analysis(data)
    except LLMUnavailableError as e:
        logger.warning(f"[Scripts] LLM critique unavailable: {e}")

    fallback_used = analysis is None
    if fallback_used:
        analysis = fallback_script_analysis()

    return {"analysis": analysis.model_dump(), "fallback_used": fallback_used}


async def rewrite_script(
    script: str,
    analysis: ScriptAnalysis,
    svc: Optional[OpenAIService] = None,
) -> Dict[str, Any]:
    """
    Rewrite a script against its critique.

    No offline fallback: raises LLMUnavailableError when no model answers.
    """
    text = (script or "").strip()
    if not text:
        raise ScriptInputError("Original script is required")

    svc = svc or OpenAIService()
    rewritten = await svc.chat_text(REWRITE_SYSTEM, _rewrite_prompt(text, analysis), max_tokens=1500, temperature=0.7)
    logger.info(f"[Scripts] Rewrote script: {len(text)} -> {len(rewritten)} chars")
    return {"rewritten_script": rewritten}


async def generate_script_objections(
    brief: ScriptBrief,
    batch: str = "initial",
    svc: Optional[OpenAIService] = None,
) -> Dict[str, Any]:
    """
    Objection/response pairs for practicing a script.

    Raises LLMUnavailableError when no model answers and ScriptGenerationError
    when the answer holds no usable pairs.
    """
    count = OBJECTION_BATCH_SIZES.get(batch, OBJECTION_BATCH_SIZES["initial"])
    svc = svc or OpenAIService()

    data = await svc.chat_json(OBJECTIONS_SYSTEM, _objections_prompt(brief, count), max_tokens=2000, temperature=0.7)
    pairs = validate_script_objections(data, limit=count)
    if not pairs:
        raise ScriptGenerationError("No usable objections in the AI response")

    return {"objections": [p.model_dump() for p in pairs], "requested": count}
