# backend/pitchcoach/api/health.py
"""
Health checks for the database and the OpenAI gateway.

The OpenAI check only reports configuration; it never spends a request.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pitchcoach.config import settings
from pitchcoach.database import get_db
from pitchcoach.utils.logger import logger

router = APIRouter(prefix="/api/health", tags=["health"])


def check_database(db: Session) -> Dict[str, Any]:
    try:
        result = db.execute(text("SELECT 1 as test")).fetchone()
        return {
            "status": "healthy" if result else "unhealthy",
            "message": "Database connection successful",
        }
    except SQLAlchemyError as e:
        logger.error(f"[Health Check] Database failed: {e}")
        return {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)[:200]}",
        }


def check_openai() -> Dict[str, Any]:
    if not settings.OPENAI_API_KEY:
        return {
            "status": "unconfigured",
            "message": "OpenAI API key not configured - heuristic scoring in use",
            "details": {},
        }
    return {
        "status": "configured",
        "message": "OpenAI API key present",
        "details": {
            "model": settings.OPENAI_MODEL,
            "fallback_models": settings.OPENAI_FALLBACK_MODELS,
            "stt_model": settings.OPENAI_STT_MODEL,
        },
    }


@router.get("")
async def health_check_all(db: Session = Depends(get_db)):
    checks = {"database": check_database(db), "openai": check_openai()}

    if checks["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif checks["openai"]["status"] != "configured":
        overall = "degraded"
    else:
        overall = "healthy"

    return {"overall_status": overall, "checks": checks}


@router.get("/database")
async def health_check_database(db: Session = Depends(get_db)):
    return check_database(db)


@router.get("/openai")
async def health_check_openai():
    return check_openai()
