# backend/pitchcoach/transcript/session.py
"""
Per-call transcript session: the single source of truth for what was said.

Interim (partial) text is kept only for live preview. Final chunks are
normalized, de-stuttered and appended idempotently; finalize() orders them
and groups them into speaker paragraphs for persistence.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Literal, Optional

from pitchcoach.transcript.events import now_ms, parse_message, speaker_for_role
from pitchcoach.transcript.text import (
    chunk_hash,
    collapse_repeated_ngrams,
    dedupe_adjacent_words,
    normalize_utterance,
)
from pitchcoach.utils.logger import logger

SessionStatus = Literal["idle", "connecting", "active", "ended", "failed"]

DEFAULT_LONG_PAUSE_MS = 3000


@dataclass
class InterimBuffer:
    text: str
    speaker: str
    source: str
    hash: str
    t0: int


@dataclass
class FinalChunk:
    text: str
    speaker: str
    timestamp_ms: int
    source: str
    hash: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


@dataclass
class SessionState:
    call_session_id: str
    status: SessionStatus = "idle"
    live_buffer: List[InterimBuffer] = field(default_factory=list)
    final_chunks: List[FinalChunk] = field(default_factory=list)
    final_transcript: str = ""


Listener = Callable[[SessionState], None]


class TranscriptSession:
    def __init__(self, call_session_id: str, long_pause_ms: int = DEFAULT_LONG_PAUSE_MS):
        self.long_pause_ms = long_pause_ms
        self._state = SessionState(call_session_id=call_session_id)
        self._hashes: set[str] = set()
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"[Transcript] Session listener failed: {e}")

    def state(self) -> SessionState:
        return replace(
            self._state,
            live_buffer=list(self._state.live_buffer),
            final_chunks=list(self._state.final_chunks),
        )

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    def set_status(self, status: SessionStatus) -> None:
        logger.info(f"[Transcript] Session {self._state.call_session_id} status: {self._state.status} -> {status}")
        self._state.status = status
        self._notify()

    # ------------------------------------------------------------------
    # ingestion
    # ------------------------------------------------------------------

    def process_message(self, message: Any) -> None:
        if not isinstance(message, dict) or message.get("type") != "transcript":
            return
        for event in parse_message(message):
            speaker = speaker_for_role(event.role)
            if event.is_final:
                self.add_final(event.text, speaker, event.timestamp_ms, event.source)
            else:
                self.add_interim(event.text, speaker, event.timestamp_ms, event.source)

    def _drop_interim(self, speaker: str, source: str) -> None:
        self._state.live_buffer = [
            b for b in self._state.live_buffer if not (b.speaker == speaker and b.source == source)
        ]

    def add_interim(self, text: str, speaker: str, timestamp_ms: Optional[int] = None, source: str = "vapi") -> None:
        normalized = normalize_utterance(text)
        if not normalized:
            return
        ts = timestamp_ms if timestamp_ms is not None else now_ms()

        self._drop_interim(speaker, source)
        self._state.live_buffer.append(
            InterimBuffer(
                text=normalized,
                speaker=speaker,
                source=source,
                hash=chunk_hash(normalized, speaker, ts),
                t0=ts,
            )
        )
        self._notify()

    def add_final(self, text: str, speaker: str, timestamp_ms: Optional[int] = None, source: str = "vapi") -> bool:
        cleaned = collapse_repeated_ngrams(dedupe_adjacent_words(normalize_utterance(text)))
        if not cleaned.strip():
            return False

        ts = timestamp_ms if timestamp_ms is not None else now_ms()
        h = chunk_hash(cleaned, speaker, ts)
        if h in self._hashes:
            logger.debug(f"[Transcript] Skipping duplicate final chunk: {h}")
            return False
        self._hashes.add(h)

        self._state.final_chunks.append(
            FinalChunk(text=cleaned, speaker=speaker, timestamp_ms=ts, source=source, hash=h)
        )
        self._drop_interim(speaker, source)
        self._notify()
        return True

    # ------------------------------------------------------------------
    # end of call
    # ------------------------------------------------------------------

    def finalize(self) -> str:
        for interim in list(self._state.live_buffer):
            self.add_final(interim.text, interim.speaker, interim.t0, interim.source)
        self._state.live_buffer = []

        ordered = sorted(self._state.final_chunks, key=lambda c: c.timestamp_ms)

        paragraphs: List[str] = []
        current: List[str] = []
        last_speaker: Optional[str] = None
        last_ts: Optional[int] = None

        for chunk in ordered:
            speaker_changed = last_speaker is not None and last_speaker != chunk.speaker
            long_pause = last_ts is not None and chunk.timestamp_ms - last_ts > self.long_pause_ms
            if (speaker_changed or long_pause) and current:
                paragraphs.append(" ".join(current))
                current = []
            current.append(chunk.text)
            last_speaker = chunk.speaker
            last_ts = chunk.timestamp_ms

        if current:
            paragraphs.append(" ".join(current))

        self._state.final_transcript = "\n\n".join(paragraphs).strip()
        self._state.status = "ended"
        logger.info(
            f"[Transcript] Finalized session {self._state.call_session_id}: "
            f"{len(self._state.final_transcript)} chars, {len(paragraphs)} paragraphs"
        )
        self._notify()
        return self._state.final_transcript

    def speaker_paragraphs(self) -> List[Dict[str, str]]:
        """Final chunks merged per consecutive speaker, for labeled rendering."""
        merged: List[Dict[str, str]] = []
        for chunk in sorted(self._state.final_chunks, key=lambda c: c.timestamp_ms):
            if merged and merged[-1]["speaker"] == chunk.speaker:
                merged[-1]["text"] = f"{merged[-1]['text']} {chunk.text}"
            else:
                merged.append({"speaker": chunk.speaker, "text": chunk.text})
        return merged

    def clear(self) -> None:
        self._state = SessionState(call_session_id=self._state.call_session_id)
        self._hashes.clear()
        self._notify()
