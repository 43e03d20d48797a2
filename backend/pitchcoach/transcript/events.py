# backend/pitchcoach/transcript/events.py
"""
Normalize raw voice-SDK client messages into SpeechEvent records.

The SDK emits three message shapes that carry speech:
- "transcript":          {type, role, transcript, transcriptType|isFinal, timestamp?, source?}
- "conversation-update": {type, conversation: [{role, content}, ...]}
- "speech-update":       {type, role, speech: {text}}
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, List, Literal, Mapping, Optional

from pitchcoach.utils.logger import logger

Role = Literal["user", "assistant", "system"]
Speaker = Literal["user", "prospect"]

DEFAULT_SOURCE = "vapi"


@dataclass(frozen=True)
class SpeechEvent:
    text: str
    role: Role
    is_final: bool
    timestamp_ms: int
    source: str = DEFAULT_SOURCE


def now_ms() -> int:
    return int(time.time() * 1000)


def speaker_for_role(role: Optional[str]) -> Speaker:
    """The AI plays the prospect; everything else is the rep practicing."""
    return "prospect" if role == "assistant" else "user"


def extract_transcript_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, Mapping):
        for key in ("text", "transcript", "content"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return ""


def _coerce_timestamp(value: Any, default: int) -> int:
    if not value or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"[Transcript] Ignoring non-numeric timestamp {value!r}")
        return default


def _is_final(message: Mapping[str, Any]) -> bool:
    transcript_type = message.get("transcriptType")
    if transcript_type:
        return transcript_type == "final"
    if message.get("isFinal") is not None:
        return bool(message.get("isFinal"))
    return True


def parse_message(message: Any, now: Optional[int] = None) -> List[SpeechEvent]:
    """Return the speech events carried by one SDK message (usually zero or one)."""
    if not isinstance(message, Mapping):
        return []

    ts_default = now if now is not None else now_ms()
    msg_type = message.get("type")

    if msg_type == "transcript":
        text = extract_transcript_text(message.get("transcript")).strip()
        if not text:
            return []
        role: Role = "assistant" if message.get("role") == "assistant" else "user"
        return [
            SpeechEvent(
                text=text,
                role=role,
                is_final=_is_final(message),
                timestamp_ms=_coerce_timestamp(message.get("timestamp"), ts_default),
                source=message.get("source") or DEFAULT_SOURCE,
            )
        ]

    if msg_type == "conversation-update":
        events = []
        for entry in message.get("conversation") or []:
            if not isinstance(entry, Mapping):
                continue
            content = entry.get("content")
            if entry.get("role") == "assistant" and isinstance(content, str) and content.strip():
                events.append(
                    SpeechEvent(
                        text=content.strip(),
                        role="assistant",
                        is_final=True,
                        timestamp_ms=ts_default,
                        source="vapi-conversation",
                    )
                )
        return events

    if msg_type == "speech-update":
        speech = message.get("speech")
        text = (speech.get("text") or "").strip() if isinstance(speech, Mapping) else ""
        if not text:
            return []
        role = "assistant" if message.get("role") == "assistant" else "user"
        return [
            SpeechEvent(
                text=text,
                role=role,
                is_final=True,
                timestamp_ms=ts_default,
                source="vapi-speech",
            )
        ]

    return []
