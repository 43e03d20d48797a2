# backend/pitchcoach/config.py
import os
from pathlib import Path
from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parents[1]   # backend/
REPO_DIR = BACKEND_DIR.parent                        # repo root

ENV_BACKEND = BACKEND_DIR / ".env"
ENV_REPO = REPO_DIR / ".env"
ENV_FILE = ENV_BACKEND if ENV_BACKEND.exists() else ENV_REPO

load_dotenv(dotenv_path=str(ENV_FILE), override=False)


def _parse_origins(raw: str) -> list[str]:
    # split, strip, drop empties, drop trailing slashes
    out = []
    for o in (raw or "").split(","):
        o = (o or "").strip().rstrip("/")
        if o:
            out.append(o)
    return out


def _parse_models(raw: str) -> list[str]:
    return [m.strip() for m in (raw or "").split(",") if m.strip()]


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pitchcoach.db")

    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Tried in order after OPENAI_MODEL when a model is unavailable or rate limited
    OPENAI_FALLBACK_MODELS: list[str] = _parse_models(
        os.getenv("OPENAI_FALLBACK_MODELS", "gpt-4.1-mini,gpt-4o")
    )
    OPENAI_STT_MODEL: str = os.getenv("OPENAI_STT_MODEL", "whisper-1")
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

    # Rate-limit retries per model before moving down the fallback chain
    LLM_RATE_LIMIT_RETRIES: int = int(os.getenv("LLM_RATE_LIMIT_RETRIES", "2"))

    # IMPORTANT: keep localhost + 127.0.0.1 for Vite dev
    CORS_ORIGINS: list[str] = _parse_origins(
        os.getenv(
            "CORS_ORIGINS",
            "http://127.0.0.1:5173,http://localhost:5173,http://127.0.0.1:8080,http://localhost:8080",
        )
    )

    # ================= Voice SDK Webhooks =================
    # Shared secret for the end-of-call report webhook (HMAC-SHA256 of the raw body)
    VOICE_WEBHOOK_SECRET: str | None = os.getenv("VOICE_WEBHOOK_SECRET")

    # ================= Transcript Cleanup =================
    TRANSCRIPT_MAX_LINE_LENGTH: int = int(os.getenv("TRANSCRIPT_MAX_LINE_LENGTH", "400"))
    TRANSCRIPT_LONG_PAUSE_MS: int = int(os.getenv("TRANSCRIPT_LONG_PAUSE_MS", "3000"))
    TRANSCRIPT_MIN_UPLOAD_CHARS: int = int(os.getenv("TRANSCRIPT_MIN_UPLOAD_CHARS", "50"))

    # ================= Environment Configuration =================
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


settings = Settings()


# =============================================================================
# CONFIGURATION VALIDATION
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(raise_on_error: bool = True) -> dict:
    """
    Validate all configuration settings.

    Args:
        raise_on_error: If True, raises ConfigValidationError on critical errors.
                       If False, returns dict with errors and warnings.

    Returns:
        Dict with 'errors' (critical) and 'warnings' (non-critical) lists.

    Raises:
        ConfigValidationError: If raise_on_error=True and critical errors found.
    """
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if settings.TRANSCRIPT_MAX_LINE_LENGTH <= 0:
        errors.append("TRANSCRIPT_MAX_LINE_LENGTH must be positive")

    # Warnings - Degraded functionality
    if not settings.OPENAI_API_KEY:
        warnings.append("OPENAI_API_KEY missing - analysis falls back to heuristic scoring")
    if not settings.VOICE_WEBHOOK_SECRET:
        warnings.append("VOICE_WEBHOOK_SECRET missing - webhook verification disabled")

    if settings.ENVIRONMENT == "production":
        if not settings.CORS_ORIGINS or any("localhost" in o for o in settings.CORS_ORIGINS):
            warnings.append("CORS_ORIGINS includes localhost in production - consider restricting")
        if settings.DATABASE_URL.startswith("sqlite"):
            warnings.append("DATABASE_URL points at SQLite in production")

    result = {"errors": errors, "warnings": warnings}

    if raise_on_error and errors:
        raise ConfigValidationError(f"Configuration errors: {'; '.join(errors)}")

    return result


def get_config_status() -> dict:
    """Configuration presence flags for the health endpoint."""
    return {
        "environment": settings.ENVIRONMENT,
        "database_configured": bool(settings.DATABASE_URL),
        "openai_configured": bool(settings.OPENAI_API_KEY),
        "openai_models": [settings.OPENAI_MODEL, *settings.OPENAI_FALLBACK_MODELS],
        "webhook_security_enabled": bool(settings.VOICE_WEBHOOK_SECRET),
    }
