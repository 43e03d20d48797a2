# backend/pitchcoach/api/webhooks.py
import json

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from pitchcoach.database import get_db
from pitchcoach.pipelines.call_pipeline import handle_end_of_call_report
from pitchcoach.utils.logger import logger
from pitchcoach.utils.rate_limit import webhook_rate_limit
from pitchcoach.utils.webhook_signature import SIGNATURE_HEADER, validate_webhook_signature

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/voice")
@webhook_rate_limit()
async def voice_webhook(request: Request, db: Session = Depends(get_db)):
    body = await request.body()

    if not validate_webhook_signature(request.headers.get(SIGNATURE_HEADER), body):
        raise HTTPException(status_code=403, detail="Invalid signature")

    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    # Some providers wrap events as {"message": {...}}
    if "type" not in payload and isinstance(payload.get("message"), dict):
        payload = payload["message"]

    logger.info(f"[Webhook] Voice event: {payload.get('type')}")

    try:
        return await handle_end_of_call_report(db, payload)
    except RuntimeError as e:
        logger.error(f"[Webhook] Failed to apply voice event: {e}")
        raise HTTPException(status_code=500, detail=str(e))
