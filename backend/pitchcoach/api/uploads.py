# backend/pitchcoach/api/uploads.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from pitchcoach.database import get_db, safe_commit
from pitchcoach.models.call_upload import CallUpload
from pitchcoach.pipelines.call_pipeline import TranscriptTooShortError, analyze_upload, reanalyze_upload
from pitchcoach.services.openai_service import LLMUnavailableError
from pitchcoach.utils.logger import logger
from pitchcoach.utils.rate_limit import expensive_rate_limit

router = APIRouter(prefix="/api/uploads", tags=["uploads"])

# Whisper's upload cap
MAX_AUDIO_BYTES = 25 * 1024 * 1024

ALLOWED_AUDIO_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/mp4",
    "audio/x-m4a",
    "audio/m4a",
    "audio/webm",
    "audio/ogg",
    "video/mp4",
}


class UploadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_filename: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    status: Optional[str] = None
    error_message: Optional[str] = None
    transcript: Optional[str] = None

    confidence_score: Optional[int] = None
    objection_handling_scores: Optional[Dict[str, int]] = None
    strengths: Optional[List[str]] = None
    weaknesses: Optional[List[str]] = None
    better_responses: Optional[Dict[str, str]] = None
    psychological_insights: Optional[str] = None
    ai_analysis: Optional[Dict[str, Any]] = None
    fallback_used: Optional[bool] = None

    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


@router.post("", response_model=UploadResponse)
@expensive_rate_limit()
async def create_upload(
    request: Request,
    file: Optional[UploadFile] = File(None),
    transcript: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """Accept an audio recording or a pasted transcript and critique it."""
    if file is None and not (transcript or "").strip():
        raise HTTPException(status_code=400, detail="Provide an audio file or a transcript")

    audio_bytes: Optional[bytes] = None
    if file is not None:
        if file.content_type and file.content_type not in ALLOWED_AUDIO_TYPES:
            raise HTTPException(status_code=400, detail=f"Unsupported file type: {file.content_type}")
        audio_bytes = await file.read()
        if not audio_bytes:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")
        if len(audio_bytes) > MAX_AUDIO_BYTES:
            raise HTTPException(status_code=400, detail="File too large (max 25 MB)")

    upload = CallUpload(
        original_filename=file.filename if file is not None else None,
        file_type=file.content_type if file is not None else "text/plain",
        file_size=len(audio_bytes) if audio_bytes is not None else len((transcript or "").encode("utf-8")),
        status="uploaded",
    )
    db.add(upload)
    ok, err = safe_commit(db, "create upload")
    if not ok:
        raise HTTPException(status_code=500, detail=err)
    db.refresh(upload)

    try:
        await analyze_upload(db, upload, audio_bytes=audio_bytes, transcript=transcript)
    except TranscriptTooShortError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        logger.error(f"[Upload] Failed to save analysis for upload {upload.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save upload analysis")

    return upload


@router.get("/{upload_id}", response_model=UploadResponse)
async def get_upload(upload_id: int, db: Session = Depends(get_db)):
    upload = db.query(CallUpload).filter(CallUpload.id == upload_id).first()
    if not upload:
        raise HTTPException(status_code=404, detail="Upload not found")
    return upload


@router.post("/{upload_id}/reanalyze", response_model=UploadResponse)
@expensive_rate_limit()
async def reanalyze(request: Request, upload_id: int, db: Session = Depends(get_db)):
    """Replace an upload's critique with a fresh one from its stored transcript."""
    upload = db.query(CallUpload).filter(CallUpload.id == upload_id).first()
    if not upload:
        raise HTTPException(status_code=404, detail="Upload not found")

    try:
        await reanalyze_upload(db, upload)
    except TranscriptTooShortError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMUnavailableError as e:
        # LLMUnavailableError is a RuntimeError, so it has to be caught first
        raise HTTPException(status_code=503, detail=str(e))
    except RuntimeError as e:
        logger.error(f"[Upload] Failed to save re-analysis for upload {upload_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save upload analysis")

    return upload
