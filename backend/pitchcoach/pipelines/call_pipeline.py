# backend/pitchcoach/pipelines/call_pipeline.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from pitchcoach.analysis.scoring import (
    CallScores,
    has_basic_participation,
    heuristic_scores,
    no_participation_scores,
)
from pitchcoach.analysis.upload_review import (
    UPLOAD_ANALYSIS_JSON_EXAMPLE,
    analysis_columns,
    fallback_upload_analysis,
    validate_upload_analysis,
)
from pitchcoach.config import settings
from pitchcoach.database import safe_commit
from pitchcoach.models.call import Call
from pitchcoach.models.call_upload import CallUpload
from pitchcoach.services.openai_service import LLMUnavailableError, OpenAIService
from pitchcoach.transcript.cleaner import CleanedTranscript, clean_transcript, compact_role_transcript
from pitchcoach.transcript.text import transcript_checksum
from pitchcoach.utils.logger import logger


class TranscriptTooShortError(ValueError):
    """Transcript is too short to be worth analyzing."""


# -----------------------------
# Prompts
# -----------------------------

SCORING_SYSTEM = (
    "You are an expert sales coach who analyzes cold calling performance. You MUST respond "
    "with valid JSON only. Provide honest, constructive feedback with specific examples from "
    "the transcript."
)

COACHING_SYSTEM = "You are a concise, practical sales coach. Always return strict JSON."

UPLOAD_SYSTEM = (
    "You are an expert sales coach analyzing call performance. Provide detailed, actionable "
    "feedback in valid JSON format only. No other text."
)


def _scoring_prompt(transcript: str) -> str:
    return f"""
Analyze this cold calling transcript and provide scores (1-10) for each category.
The caller ("User") is a salesperson; the "Prospect" is the business owner being sold to.

Only score the CALLER. If the caller made no meaningful sales attempt (less than 20 words
of sales content), return all scores as 0 and explain the insufficient attempt in feedback.

TRANSCRIPT:
{transcript}

Score:
1. objection_handling_score - did they turn objections around or ignore them?
2. confidence_score - assertive or hesitant?
3. clarity_score - was the message focused?
4. persuasiveness_score - emotional or logical appeal?
5. tone_score - did they listen and tailor answers?
6. overall_pitch_score - structure and delivery of the pitch
7. closing_score - did they try to advance the sale?
8. successful_sale - did the prospect agree to buy, meet, or show strong interest?

Return JSON with keys: confidence_score, objection_handling_score, clarity_score,
persuasiveness_score, tone_score, overall_pitch_score, closing_score, overall_score,
successful_sale (boolean), feedback (string with specific examples and suggestions).
""".strip()


def _coaching_prompt(transcript: str) -> str:
    return f"""
Analyze the following call transcript and extract concrete objection-coaching advice.

ROLE MAPPING:
- "User:" lines are the sales rep being coached (address them as "You").
- "Assistant:" lines are the prospect.
- "assistant_said" MUST quote the prospect; "your_response" MUST quote the rep. Never swap these.

TRANSCRIPT:
\"\"\"
{transcript}
\"\"\"

Return ONLY JSON with this shape:
{{
  "coaching": [
    {{
      "assistant_said": "the prospect's objection or question",
      "your_response": "your reply",
      "issue": "what went wrong (1-2 sentences)",
      "better_response": "what to say next time (2-4 sentences)",
      "why_better": "why this works (1-2 sentences)",
      "category": "one of: pricing, timing, authority, fit, competition, clarity, trust, other"
    }}
  ],
  "summary": "overall guidance in 2-3 sentences",
  "tips": ["3 short tips"]
}}

If no clear objection exists, still identify weak spots and propose better phrasing.
""".strip()


def _upload_prompt(transcript: str) -> str:
    return f"""
Analyze this sales call transcript and provide a comprehensive review. Focus on:
1. What the salesperson did well (strengths)
2. What went wrong or could be improved (weaknesses)
3. Objection handling grades for Price, Timing, Trust and Competitor (0-100)
4. Better responses they could have used
5. Psychological insights into why their responses were weak

Transcript:
{transcript}

Respond with JSON in exactly this shape:
{UPLOAD_ANALYSIS_JSON_EXAMPLE}
""".strip()


FALLBACK_COACHING: Dict[str, Any] = {
    "coaching": [
        {
            "assistant_said": "General objection from prospect",
            "your_response": "Your response from the call",
            "issue": "You could have been more specific and addressed their concerns more directly.",
            "better_response": (
                "I understand your concern. Let me explain specifically how this addresses your situation..."
            ),
            "why_better": "This acknowledges their objection and provides a direct, personalized response.",
            "category": "clarity",
        }
    ],
    "summary": (
        "We reviewed your transcript and found areas to improve. Focus on clarifying value, "
        "acknowledging concerns, and closing with confidence."
    ),
    "tips": [
        "Acknowledge the objection before answering",
        "Lead with value tied to their role",
        "End with a crisp next step",
    ],
}


# -----------------------------
# End-of-call analysis
# -----------------------------

def _coerce_duration(value: Any) -> int:
    if not value or isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"[Analysis] Ignoring non-numeric duration {value!r}")
        return 0


def _spoken_text(cleaned: CleanedTranscript, raw: str) -> str:
    """What was actually said, without the speaker labels render() adds."""
    if cleaned.fallback_used or not cleaned.turns:
        return raw
    return " ".join(t.text for t in cleaned.turns)


async def _grade(transcript: str, spoken: str, svc: OpenAIService) -> tuple[CallScores, str]:
    if not has_basic_participation(spoken):
        logger.info("[Analysis] No participation detected, storing zero scores")
        return no_participation_scores(), "no_participation"

    if svc.enabled:
        try:
            data = await svc.chat_json(SCORING_SYSTEM, _scoring_prompt(transcript), max_tokens=1000)
            return CallScores.model_validate(data), "llm"
        except LLMUnavailableError as e:
            logger.warning(f"[Analysis] LLM grading unavailable, using heuristics: {e}")
        except ValueError as e:
            # pydantic ValidationError is a ValueError
            logger.warning(f"[Analysis] LLM grading returned invalid scores, using heuristics: {e}")

    return heuristic_scores(transcript), "heuristic"


async def run_end_call_analysis(
    db: Session,
    call: Call,
    transcript: Optional[str] = None,
    duration: Optional[int] = None,
    svc: Optional[OpenAIService] = None,
) -> CallScores:
    """
    Clean the transcript, grade it, and persist scores on the call.

    LLM failures degrade to heuristic scores; only database errors surface.
    """
    svc = svc or OpenAIService()
    raw = transcript if transcript is not None else (call.transcript or "")

    cleaned = clean_transcript(raw, max_line_length=settings.TRANSCRIPT_MAX_LINE_LENGTH)
    graded_text = cleaned.text or raw

    scores, source = await _grade(graded_text, _spoken_text(cleaned, raw), svc)

    call.transcript = raw
    call.cleaned_transcript = cleaned.render(style="said")
    call.transcript_checksum = transcript_checksum(raw)
    call.speakers_inferred = cleaned.inferred_speakers
    if duration is not None:
        call.duration_seconds = _coerce_duration(duration)

    for field, value in scores.model_dump().items():
        if field == "feedback":
            call.ai_feedback = value
        else:
            setattr(call, field, value)

    call.analysis_source = source
    call.status = "completed"
    call.analyzed_at = datetime.utcnow()

    ok, err = safe_commit(db, f"end-call analysis for call {call.id}")
    if not ok:
        raise RuntimeError(err)
    db.refresh(call)

    logger.info(f"[Analysis] Call {call.id} graded via {source}: overall={scores.overall_score}")
    return scores


async def handle_end_of_call_report(
    db: Session,
    payload: Dict[str, Any],
    svc: Optional[OpenAIService] = None,
) -> Dict[str, Any]:
    """
    Apply a voice SDK "end-of-call-report" webhook.

    Returns a small status dict; analysis failures are logged, not raised.
    """
    if payload.get("type") != "end-of-call-report":
        return {"success": True, "skipped": "unhandled event type"}

    call_info = payload.get("call") or {}
    metadata = call_info.get("metadata") or {}
    record_id = metadata.get("callRecordId")
    if not record_id:
        logger.info("[Webhook] No callRecordId in metadata, skipping")
        return {"success": True, "skipped": "missing callRecordId"}

    try:
        record_id = int(record_id)
    except (TypeError, ValueError):
        logger.warning(f"[Webhook] Non-numeric callRecordId {record_id!r}, skipping")
        return {"success": True, "skipped": "invalid callRecordId"}

    call = db.query(Call).filter(Call.id == record_id).first()
    if not call:
        logger.warning(f"[Webhook] Call {record_id} not found, skipping")
        return {"success": True, "skipped": "call not found"}

    transcript = payload.get("transcript") or ""
    duration = _coerce_duration(call_info.get("duration"))

    call.transcript = transcript
    call.duration_seconds = duration
    call.status = "completed"
    call.ended_at = call.ended_at or datetime.utcnow()
    if call_info.get("id"):
        call.provider_call_id = str(call_info["id"])

    ok, err = safe_commit(db, f"end-of-call report for call {record_id}")
    if not ok:
        raise RuntimeError(err)

    analyzed = False
    if transcript.strip():
        try:
            await run_end_call_analysis(db, call, transcript, duration, svc=svc)
            analyzed = True
        except Exception as e:
            logger.error(f"[Webhook] Analysis failed for call {record_id}: {e}")

    return {"success": True, "call_id": record_id, "analyzed": analyzed}


# -----------------------------
# Objection coaching
# -----------------------------

async def run_objection_coaching(call: Call, svc: Optional[OpenAIService] = None) -> Dict[str, Any]:
    transcript = (call.transcript or "").strip()
    if not transcript:
        raise TranscriptTooShortError("No transcript available for this call")

    svc = svc or OpenAIService()
    compact = compact_role_transcript(transcript)

    try:
        data = await svc.chat_json(COACHING_SYSTEM, _coaching_prompt(compact), max_tokens=700, temperature=0.6)
    except LLMUnavailableError as e:
        logger.warning(f"[Coaching] LLM unavailable for call {call.id}, returning fallback: {e}")
        return {**FALLBACK_COACHING, "fallback_used": True}

    if not isinstance(data.get("coaching"), list):
        logger.warning(f"[Coaching] Unexpected coaching shape for call {call.id}, returning fallback")
        return {**FALLBACK_COACHING, "fallback_used": True}

    return {
        "coaching": data["coaching"],
        "summary": data.get("summary") or "",
        "tips": data.get("tips") or [],
        "fallback_used": False,
    }


# -----------------------------
# Uploaded recordings
# -----------------------------

async def analyze_upload(
    db: Session,
    upload: CallUpload,
    audio_bytes: Optional[bytes] = None,
    transcript: Optional[str] = None,
    svc: Optional[OpenAIService] = None,
) -> CallUpload:
    """
    Transcribe (when audio is given), critique and persist an uploaded call.

    Raises TranscriptTooShortError after marking the upload failed.
    """
    svc = svc or OpenAIService()
    upload.status = "processing"
    safe_commit(db, f"upload {upload.id} processing")

    if audio_bytes is not None and not (transcript or "").strip():
        try:
            transcript = await svc.transcribe_audio(audio_bytes, upload.original_filename or "recording.mp3")
        except Exception as e:
            logger.error(f"[Upload] Transcription failed for upload {upload.id}: {e}")
            transcript = None

    text = (transcript or "").strip()
    upload.transcript = text or None

    if len(text) < settings.TRANSCRIPT_MIN_UPLOAD_CHARS:
        upload.status = "failed"
        upload.error_message = (
            "Transcript too short or empty. Please upload a clearer recording with actual conversation."
        )
        upload.processed_at = datetime.utcnow()
        safe_commit(db, f"upload {upload.id} failed")
        raise TranscriptTooShortError(upload.error_message)

    analysis = None
    if svc.enabled:
        try:
            data = await svc.chat_json(UPLOAD_SYSTEM, _upload_prompt(text), max_tokens=1500, temperature=0.3)
            analysis = validate_upload_analysis(data)
        except LLMUnavailableError as e:
            logger.warning(f"[Upload] LLM critique unavailable for upload {upload.id}: {e}")

    fallback_used = analysis is None
    if fallback_used:
        analysis = fallback_upload_analysis()

    for column, value in analysis_columns(analysis).items():
        setattr(upload, column, value)
    upload.fallback_used = fallback_used
    upload.status = "completed"
    upload.error_message = None
    upload.processed_at = datetime.utcnow()

    ok, err = safe_commit(db, f"upload {upload.id} analysis")
    if not ok:
        raise RuntimeError(err)
    db.refresh(upload)

    logger.info(f"[Upload] Upload {upload.id} analyzed (fallback_used={fallback_used})")
    return upload


async def reanalyze_upload(
    db: Session,
    upload: CallUpload,
    svc: Optional[OpenAIService] = None,
) -> CallUpload:
    """
    Re-run the critique on an upload's stored transcript.

    Unlike the first pass there is no fallback: the existing critique is kept
    and LLMUnavailableError is raised when no model returns a valid one.
    """
    text = (upload.transcript or "").strip()
    if not text:
        raise TranscriptTooShortError("No transcript found for this call. Cannot re-analyze.")

    svc = svc or OpenAIService()
    if not svc.enabled:
        raise LLMUnavailableError("OPENAI_API_KEY not configured")

    previous_status = upload.status
    upload.status = "processing"
    safe_commit(db, f"upload {upload.id} re-analysis")

    analysis = None
    try:
        data = await svc.chat_json(UPLOAD_SYSTEM, _upload_prompt(text), max_tokens=2000, temperature=0.3)
        analysis = validate_upload_analysis(data)
    except LLMUnavailableError as e:
        logger.warning(f"[Upload] Re-analysis unavailable for upload {upload.id}: {e}")

    if analysis is None:
        upload.status = previous_status
        safe_commit(db, f"upload {upload.id} re-analysis failed")
        raise LLMUnavailableError("Re-analysis failed. Please try again later.")

    for column, value in analysis_columns(analysis).items():
        setattr(upload, column, value)
    upload.fallback_used = False
    upload.status = "completed"
    upload.error_message = None
    upload.processed_at = datetime.utcnow()

    ok, err = safe_commit(db, f"upload {upload.id} re-analysis")
    if not ok:
        raise RuntimeError(err)
    db.refresh(upload)

    logger.info(f"[Upload] Upload {upload.id} re-analyzed")
    return upload
