# backend/tests/conftest.py
import os
import tempfile

# Must be set before anything imports pitchcoach.config
_TMP_DIR = tempfile.mkdtemp(prefix="pitchcoach-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["OPENAI_API_KEY"] = ""
os.environ["VOICE_WEBHOOK_SECRET"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from pitchcoach import models  # noqa: E402,F401
from pitchcoach.database import Base, SessionLocal, engine  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    """Stand-in for OpenAIService with the LLM switched on."""
    svc = MagicMock()
    svc.enabled = True
    svc.chat_json = AsyncMock()
    svc.chat_text = AsyncMock()
    svc.transcribe_audio = AsyncMock(return_value=None)
    return svc
