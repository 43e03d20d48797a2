# backend/pitchcoach/services/openai_service.py
"""
OpenAI gateway for call grading, coaching, script writing and upload transcription.

- JSON and plain-text chat completions walk a model fallback chain
- 429s are retried with backoff on the same model before moving on
- Whisper transcription for uploaded recordings
- Without OPENAI_API_KEY the service reports itself disabled and callers
  use their heuristic fallbacks
"""
from __future__ import annotations

import asyncio
import io
import time
from typing import Any, Callable, Dict, List, Optional

import openai
from openai import AsyncOpenAI, OpenAI

from pitchcoach.analysis.scoring import AnalysisParseError, parse_llm_json
from pitchcoach.config import settings
from pitchcoach.utils.logger import logger
from pitchcoach.utils.retry_logic import retry_async


class LLMUnavailableError(RuntimeError):
    """No model in the chain produced a usable answer."""


def _non_empty_text(content: str) -> str:
    text = (content or "").strip()
    if not text:
        raise AnalysisParseError("empty completion")
    return text


class OpenAIService:
    # Class-level clients shared by all instances
    _async_client: Optional[AsyncOpenAI] = None
    _sync_client: Optional[OpenAI] = None

    # Backoff for rate-limit retries (seconds)
    RATE_LIMIT_BASE_DELAY = 0.5
    RATE_LIMIT_MAX_DELAY = 8.0

    def __init__(self):
        self.client = self.get_sync_client()

        self.model = (settings.OPENAI_MODEL or "gpt-4o-mini").strip()
        self.stt_model = (settings.OPENAI_STT_MODEL or "whisper-1").strip()
        self.timeout_s = float(settings.LLM_TIMEOUT_SECONDS)
        self.rate_limit_retries = int(settings.LLM_RATE_LIMIT_RETRIES)

        chain: List[str] = []
        for m in [self.model, *settings.OPENAI_FALLBACK_MODELS]:
            if m and m not in chain:
                chain.append(m)
        self.models = chain

    @property
    def enabled(self) -> bool:
        return bool(settings.OPENAI_API_KEY)

    @classmethod
    def get_async_client(cls) -> Optional[AsyncOpenAI]:
        """Get or create the shared async client."""
        if not settings.OPENAI_API_KEY:
            return None
        if cls._async_client is None:
            cls._async_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return cls._async_client

    @classmethod
    def get_sync_client(cls) -> Optional[OpenAI]:
        """Get or create the shared sync client (Whisper runs in a worker thread)."""
        if not settings.OPENAI_API_KEY:
            return None
        if cls._sync_client is None:
            cls._sync_client = OpenAI(api_key=settings.OPENAI_API_KEY)
        return cls._sync_client

    @classmethod
    async def close_client(cls) -> None:
        if cls._async_client is not None:
            await cls._async_client.close()
            cls._async_client = None
        if cls._sync_client is not None:
            cls._sync_client.close()
            cls._sync_client = None

    async def _create_completion(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
        json_mode: bool = True,
    ) -> str:
        client = self.get_async_client()
        if client is None:
            raise LLMUnavailableError("OPENAI_API_KEY not configured")

        params: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        resp = await asyncio.wait_for(client.chat.completions.create(**params), timeout=self.timeout_s)
        return (resp.choices[0].message.content or "").strip()

    async def _complete_with_retry(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
        json_mode: bool = True,
    ) -> str:
        @retry_async(
            max_retries=self.rate_limit_retries,
            base_delay=self.RATE_LIMIT_BASE_DELAY,
            max_delay=self.RATE_LIMIT_MAX_DELAY,
            exceptions=(openai.RateLimitError,),
        )
        async def _attempt() -> str:
            return await self._create_completion(model, messages, max_tokens, temperature, json_mode)

        return await _attempt()

    async def _run_chain(
        self,
        system: str,
        prompt: str,
        models: Optional[List[str]],
        max_tokens: int,
        temperature: float,
        json_mode: bool,
        accept: Callable[[str], Any],
    ) -> Any:
        if not self.enabled:
            raise LLMUnavailableError("OPENAI_API_KEY not configured")

        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        last_error: Optional[str] = None

        for model in models or self.models:
            llm_start = time.time()
            try:
                content = await self._complete_with_retry(model, messages, max_tokens, temperature, json_mode)
            except openai.RateLimitError as e:
                last_error = f"{model}: rate limited ({e})"
                logger.warning(f"[LLM] {model} still rate limited after retries, trying next model")
                continue
            except asyncio.TimeoutError:
                last_error = f"{model}: timed out"
                logger.warning(f"[LLM] {model} timed out after {self.timeout_s:.0f}s, trying next model")
                continue
            except openai.APIError as e:
                last_error = f"{model}: {e}"
                logger.error(f"[LLM] {model} API error: {e}")
                continue

            elapsed = (time.time() - llm_start) * 1000
            logger.info(f"[LLM] {model} completion: {elapsed:.2f}ms")

            try:
                return accept(content)
            except AnalysisParseError as e:
                last_error = f"{model}: {e}"
                logger.warning(f"[LLM] {model} returned an unusable reply: {e}")

        raise LLMUnavailableError(last_error or "no models configured")

    async def chat_json(
        self,
        system: str,
        prompt: str,
        *,
        models: Optional[List[str]] = None,
        max_tokens: int = 1200,
        temperature: float = 0.3,
    ) -> Dict[str, Any]:
        """
        Ask for a JSON object, trying each model in turn.

        Raises LLMUnavailableError when every model failed, was rate limited
        past its retries, or returned something that isn't a JSON object.
        """
        return await self._run_chain(
            system, prompt, models, max_tokens, temperature, json_mode=True, accept=parse_llm_json
        )

    async def chat_text(
        self,
        system: str,
        prompt: str,
        *,
        models: Optional[List[str]] = None,
        max_tokens: int = 1500,
        temperature: float = 0.7,
    ) -> str:
        """Free-form completion (scripts). Same chain and errors as chat_json; empty replies count as failures."""
        return await self._run_chain(
            system, prompt, models, max_tokens, temperature, json_mode=False, accept=_non_empty_text
        )

    async def transcribe_audio(self, audio_bytes: bytes, filename: str = "recording.mp3") -> Optional[str]:
        """Whisper transcription with an English hint. None when disabled or empty."""
        if not self.client:
            return None

        f = io.BytesIO(audio_bytes)
        f.name = filename or "recording.mp3"

        try:
            resp = await asyncio.to_thread(
                self.client.audio.transcriptions.create,
                model=self.stt_model,
                file=f,
                language="en",
            )
        except openai.APIError as e:
            logger.error(f"[STT] OpenAI transcription error: {e}")
            raise

        text = getattr(resp, "text", None)
        return text.strip() if text else None
