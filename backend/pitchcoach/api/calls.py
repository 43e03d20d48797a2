# backend/pitchcoach/api/calls.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from pitchcoach.database import get_db, safe_commit
from pitchcoach.models.call import Call
from pitchcoach.pipelines.call_pipeline import (
    TranscriptTooShortError,
    run_end_call_analysis,
    run_objection_coaching,
)
from pitchcoach.transcript.replay import parse_replay_segments
from pitchcoach.utils.logger import logger
from pitchcoach.utils.rate_limit import expensive_rate_limit

router = APIRouter(prefix="/api/calls", tags=["calls"])


class CallCreate(BaseModel):
    prospect_personality: Optional[str] = None
    difficulty_level: Optional[int] = Field(None, ge=1, le=10)
    provider_call_id: Optional[str] = None


class EndAnalysisRequest(BaseModel):
    transcript: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)


class CallResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_call_id: Optional[str] = None
    prospect_personality: Optional[str] = None
    difficulty_level: Optional[int] = None
    status: Optional[str] = None
    duration_seconds: Optional[int] = None

    transcript: Optional[str] = None
    cleaned_transcript: Optional[str] = None
    transcript_checksum: Optional[str] = None
    speakers_inferred: Optional[bool] = None

    confidence_score: Optional[int] = None
    objection_handling_score: Optional[int] = None
    clarity_score: Optional[int] = None
    persuasiveness_score: Optional[int] = None
    tone_score: Optional[int] = None
    overall_pitch_score: Optional[int] = None
    closing_score: Optional[int] = None
    overall_score: Optional[int] = None
    successful_sale: Optional[bool] = None

    ai_feedback: Optional[str] = None
    analysis_source: Optional[str] = None

    created_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    analyzed_at: Optional[datetime] = None


def _get_call_or_404(db: Session, call_id: int) -> Call:
    call = db.query(Call).filter(Call.id == call_id).first()
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    return call


@router.post("", response_model=CallResponse)
async def create_call(payload: CallCreate, db: Session = Depends(get_db)):
    call = Call(
        prospect_personality=payload.prospect_personality,
        difficulty_level=payload.difficulty_level,
        provider_call_id=payload.provider_call_id,
        status="started",
        duration_seconds=0,
    )
    db.add(call)
    ok, err = safe_commit(db, "create call")
    if not ok:
        raise HTTPException(status_code=500, detail=err)
    db.refresh(call)
    logger.info(f"[Calls] Created call {call.id}")
    return call


@router.get("/{call_id}", response_model=CallResponse)
async def get_call(call_id: int, db: Session = Depends(get_db)):
    return _get_call_or_404(db, call_id)


@router.post("/{call_id}/end-analysis", response_model=CallResponse)
@expensive_rate_limit()
async def end_analysis(
    request: Request,
    call_id: int,
    payload: EndAnalysisRequest,
    db: Session = Depends(get_db),
):
    call = _get_call_or_404(db, call_id)
    transcript = payload.transcript if payload.transcript is not None else call.transcript
    if transcript is None:
        raise HTTPException(status_code=400, detail="Transcript is required")

    try:
        await run_end_call_analysis(db, call, transcript, payload.duration)
    except RuntimeError as e:
        logger.error(f"[Calls] End-call analysis failed for call {call_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save call analysis")
    return call


@router.post("/{call_id}/coaching")
@expensive_rate_limit()
async def coaching(request: Request, call_id: int, db: Session = Depends(get_db)):
    call = _get_call_or_404(db, call_id)
    try:
        result = await run_objection_coaching(call)
    except TranscriptTooShortError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"call_id": call.id, **result}


@router.get("/{call_id}/replay")
async def replay(call_id: int, db: Session = Depends(get_db)):
    call = _get_call_or_404(db, call_id)
    source = call.cleaned_transcript or call.transcript or ""
    segments = parse_replay_segments(source)
    total = segments[-1]["timestamp"] + segments[-1]["duration"] if segments else 0.0
    return {"call_id": call.id, "segments": segments, "total_duration": round(total, 3)}
