# backend/pitchcoach/utils/webhook_signature.py
"""
Voice webhook signature verification.

The voice provider signs the raw request body with HMAC-SHA256 using the
shared secret and sends the hex digest in the X-Webhook-Signature header
(optionally prefixed with "sha256=").
"""

import hashlib
import hmac
from typing import Optional

from pitchcoach.config import settings
from pitchcoach.utils.logger import logger

SIGNATURE_HEADER = "X-Webhook-Signature"


def compute_webhook_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def validate_webhook_signature(signature: Optional[str], body: bytes, secret: Optional[str] = None) -> bool:
    """
    Check a webhook signature against the raw body.

    Returns True when no secret is configured (verification disabled).
    """
    secret = secret or settings.VOICE_WEBHOOK_SECRET
    if not secret:
        return True

    if not signature:
        logger.warning(f"[Webhook Security] No {SIGNATURE_HEADER} header provided")
        return False

    provided = signature.strip()
    if provided.lower().startswith("sha256="):
        provided = provided[len("sha256="):]

    expected = compute_webhook_signature(body, secret)
    # Constant-time comparison
    is_valid = hmac.compare_digest(provided.lower(), expected)
    if not is_valid:
        logger.warning("[Webhook Security] Invalid webhook signature")
    return is_valid
