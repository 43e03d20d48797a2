# backend/pitchcoach/api/transcripts.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from pitchcoach.analysis.moments import extract_moments
from pitchcoach.analysis.objections import (
    detect_objections,
    get_moment_coaching,
    get_objection_coaching,
    get_personality_guidance,
)
from pitchcoach.config import settings
from pitchcoach.transcript.cleaner import clean_transcript
from pitchcoach.transcript.session import TranscriptSession
from pitchcoach.transcript.text import transcript_checksum
from pitchcoach.utils.logger import logger

router = APIRouter(prefix="/api/transcripts", tags=["transcripts"])


class CleanRequest(BaseModel):
    transcript: str = ""
    style: str = Field("label", pattern="^(label|said)$")
    max_line_length: Optional[int] = Field(None, gt=0)


class FinalizeRequest(BaseModel):
    call_session_id: str = "adhoc"
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    long_pause_ms: Optional[int] = Field(None, ge=0)


class MomentsRequest(BaseModel):
    transcript: str
    call_id: Optional[int] = None
    personality: Optional[str] = None


class ObjectionsRequest(BaseModel):
    message: str
    personality: str = "professional"


@router.post("/clean")
async def clean(req: CleanRequest):
    cleaned = clean_transcript(
        req.transcript,
        max_line_length=req.max_line_length or settings.TRANSCRIPT_MAX_LINE_LENGTH,
    )
    out = cleaned.to_dict()
    out["text"] = cleaned.render(style=req.style)
    out["words_by_speaker"] = cleaned.words_by_speaker()
    return out


@router.post("/finalize")
async def finalize(req: FinalizeRequest):
    """Replay raw voice SDK messages through a session and return the final transcript."""
    session = TranscriptSession(
        req.call_session_id,
        long_pause_ms=req.long_pause_ms if req.long_pause_ms is not None else settings.TRANSCRIPT_LONG_PAUSE_MS,
    )
    session.set_status("active")
    for message in req.messages:
        session.process_message(message)

    final_text = session.finalize()
    state = session.state()
    return {
        "call_session_id": state.call_session_id,
        "status": state.status,
        "final_transcript": final_text,
        "checksum": transcript_checksum(final_text),
        "chunks": len(state.final_chunks),
        "paragraphs": session.speaker_paragraphs(),
    }


@router.post("/moments")
async def moments(req: MomentsRequest):
    if not req.transcript.strip():
        raise HTTPException(status_code=400, detail="Transcript is required")
    found = extract_moments(req.transcript)
    if req.personality:
        for moment in found:
            moment["coaching"] = get_moment_coaching(moment["type"], req.personality)
    logger.info(f"[Moments] Generated {len(found)} moments for call {req.call_id}")
    return {"moments": found}


@router.post("/objections")
async def objections(req: ObjectionsRequest):
    detected = detect_objections(req.message)
    for obj in detected:
        obj["coaching"] = get_objection_coaching(obj["type"], req.personality)
    return {
        "objections": detected,
        "personality_guidance": get_personality_guidance(req.personality),
    }
