# backend/pitchcoach/utils/rate_limit.py
"""
Rate limiting for API endpoints (slowapi).

Decorated endpoints must accept a `request: Request` argument.
Set RATE_LIMIT_ENABLED=false to turn limits off (tests, local load runs).
"""

import logging
import os
from typing import Callable

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").strip().lower() not in ("0", "false", "no")

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

RATE_LIMITS = {
    "webhook": "120/minute",   # voice provider callbacks
    "expensive": "20/minute",  # LLM-backed analysis and transcription
}


def get_limiter() -> Limiter:
    return limiter


def rate_limit(limit_string: str) -> Callable:
    return limiter.limit(limit_string)


def webhook_rate_limit() -> Callable:
    return rate_limit(RATE_LIMITS["webhook"])


def expensive_rate_limit() -> Callable:
    """LLM-backed endpoints."""
    return rate_limit(RATE_LIMITS["expensive"])
