import logging
from datetime import datetime

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pitchcoach.config import settings, validate_config, get_config_status, ConfigValidationError
from pitchcoach.database import Base, engine, get_db
from pitchcoach import models  # noqa: F401  registers tables on Base

from pitchcoach.api import (
    calls,
    health,
    scripts,
    transcripts,
    uploads,
    webhooks,
)
from pitchcoach.services.openai_service import OpenAIService
from pitchcoach.utils.rate_limit import get_limiter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("pitchcoach.main")

VERSION = "1.0.0"

app = FastAPI(title="PitchCoach Backend", version=VERSION)

app.state.limiter = get_limiter()
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.on_event("startup")
async def startup_event():
    logger.info("PitchCoach Backend Starting...")

    try:
        result = validate_config(raise_on_error=settings.ENVIRONMENT == "production")
        for warning in result.get("warnings", []):
            logger.warning(f"Config warning: {warning}")
        for error in result.get("errors", []):
            logger.error(f"Config error: {error}")
    except ConfigValidationError as e:
        logger.critical(f"FATAL: {e}")
        raise SystemExit(1)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")
    logger.info("PitchCoach Backend Started")


@app.on_event("shutdown")
async def shutdown_event():
    await OpenAIService.close_client()
    logger.info("PitchCoach Backend Shutdown Complete")


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(transcripts.router)
app.include_router(calls.router)
app.include_router(uploads.router)
app.include_router(scripts.router)
app.include_router(webhooks.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"message": "PitchCoach API", "status": "running", "version": VERSION}


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Database connectivity plus configuration flags."""
    health_status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": VERSION,
        "checks": {},
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except SQLAlchemyError as e:
        health_status["checks"]["database"] = f"error: {str(e)[:100]}"
        health_status["status"] = "degraded"

    config_status = get_config_status()
    health_status["checks"]["config"] = config_status

    if not config_status.get("database_configured"):
        health_status["status"] = "unhealthy"
    elif not config_status.get("openai_configured"):
        health_status["status"] = "degraded"

    return health_status


@app.get("/health/simple")
async def health_simple():
    """Simple health check for load balancers."""
    return {"status": "ok"}
