# backend/pitchcoach/transcript/processor.py
"""
Partial/final transcript buffering for live calls.

The speech recognizer streams many partial hypotheses per utterance and then
(usually) one final. Finals are sometimes missing, sometimes shorter than the
last partial, and sometimes delivered twice through different SDK channels.
TranscriptProcessor keeps the best text per (role, source) and rejects repeats;
TranscriptCollector accumulates accepted chunks into the running transcript.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pitchcoach.transcript.events import SpeechEvent, now_ms, parse_message
from pitchcoach.transcript.text import dedupe_adjacent_words, normalize_key
from pitchcoach.utils.logger import logger


@dataclass
class TranscriptChunk:
    text: str
    role: str
    timestamp_ms: int
    source: str
    type: str = "final"
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


@dataclass
class _PartialBuffer:
    text: str
    role: str
    timestamp_ms: int
    source: str


class TranscriptProcessor:
    def __init__(
        self,
        debounce_ms: int = 500,
        max_partial_buffer_age_ms: int = 5000,
        max_chunks_to_keep: int = 100,
    ):
        self.debounce_ms = debounce_ms
        self.max_partial_buffer_age_ms = max_partial_buffer_age_ms
        self.max_chunks_to_keep = max_chunks_to_keep

        self._partials: Dict[str, _PartialBuffer] = {}
        # dict keeps insertion order, which the trim below relies on
        self._seen: Dict[str, None] = {}
        self._last_key = ""

    def deduplicate_text(self, text: str) -> str:
        """
        Remove stutters and reject an utterance identical to the previous one.

        Returns "" when the text should be dropped.
        """
        if not text or not text.strip():
            return ""

        if normalize_key(text) == self._last_key:
            logger.debug(f"[Transcript] Skipping duplicate normalized text: {text!r}")
            return ""

        result = dedupe_adjacent_words(text)
        if result.strip():
            self._last_key = normalize_key(result)
        return result

    def process_partial(self, text: str, role: str, source: str, now: Optional[int] = None) -> None:
        clean = self.deduplicate_text(text)
        if not clean:
            return
        key = f"{role}-{source}"
        self._partials[key] = _PartialBuffer(
            text=clean,
            role=role,
            timestamp_ms=now if now is not None else now_ms(),
            source=source,
        )

    def _remember(self, text: str, role: str, source: str) -> bool:
        seen_key = f"{normalize_key(text)}-{role}-{source}"
        if seen_key in self._seen:
            return False
        self._seen[seen_key] = None

        if len(self._seen) > self.max_chunks_to_keep:
            recent = list(self._seen)[-50:]
            self._seen = dict.fromkeys(recent)
        return True

    def process_final(
        self, text: str, role: str, source: str, now: Optional[int] = None
    ) -> Optional[TranscriptChunk]:
        key = f"{role}-{source}"
        clean = self.deduplicate_text(text)

        # The last partial can be longer than a truncated final
        buffered = self._partials.pop(key, None)
        final_text = clean
        if buffered and (not clean or len(buffered.text) > len(clean)):
            final_text = buffered.text

        if not final_text:
            return None

        if not self._remember(final_text, role, source):
            logger.debug(f"[Transcript] Skipping duplicate final transcript: {final_text!r}")
            return None

        return TranscriptChunk(
            text=final_text,
            role=role,
            timestamp_ms=now if now is not None else now_ms(),
            source=source,
        )

    def flush_partials(self) -> List[TranscriptChunk]:
        """Promote every buffered partial to a final chunk (end of call)."""
        chunks: List[TranscriptChunk] = []
        for key, buffered in list(self._partials.items()):
            # Only the repeat-rejection step applies here: the text was already
            # de-stuttered when it was buffered
            if not self._remember(buffered.text, buffered.role, buffered.source):
                continue
            chunks.append(
                TranscriptChunk(
                    text=buffered.text,
                    role=buffered.role,
                    timestamp_ms=buffered.timestamp_ms,
                    source=buffered.source,
                )
            )
        self._partials.clear()
        return chunks

    def cleanup_expired(self, now: Optional[int] = None) -> int:
        current = now if now is not None else now_ms()
        expired = [
            key
            for key, buffered in self._partials.items()
            if current - buffered.timestamp_ms > self.max_partial_buffer_age_ms
        ]
        for key in expired:
            del self._partials[key]
        return len(expired)

    @property
    def pending_partials(self) -> int:
        return len(self._partials)

    def clear(self) -> None:
        self._partials.clear()
        self._seen.clear()
        self._last_key = ""


class TranscriptCollector:
    """Running transcript built from chunks the processor accepts."""

    def __init__(self, processor: Optional[TranscriptProcessor] = None):
        self.processor = processor or TranscriptProcessor()
        self.full_transcript = ""
        self.chunks: List[TranscriptChunk] = []
        self._pending: List[TranscriptChunk] = []

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def add_partial(self, text: str, role: str = "user", source: str = "vapi", now: Optional[int] = None) -> None:
        if not text or not text.strip():
            return
        self.processor.process_partial(text.strip(), role, source, now)

    def add_final(self, text: str, role: str = "user", source: str = "vapi", now: Optional[int] = None) -> bool:
        if not text or not text.strip():
            return False
        chunk = self.processor.process_final(text.strip(), role, source, now)
        if chunk is None:
            return False
        self._pending.append(chunk)
        return True

    def add_event(self, event: SpeechEvent) -> None:
        if event.is_final:
            self.add_final(event.text, event.role, event.source, event.timestamp_ms)
        else:
            self.add_partial(event.text, event.role, event.source, event.timestamp_ms)

    def handle_message(self, message: Any) -> None:
        for event in parse_message(message):
            self.add_event(event)

    def commit(self) -> str:
        """Append pending chunks, in timestamp order, to the running transcript."""
        if not self._pending:
            return self.full_transcript

        ordered = sorted(self._pending, key=lambda c: c.timestamp_ms)
        seen = set()
        texts = []
        for chunk in ordered:
            key = normalize_key(chunk.text)
            if key and key not in seen:
                seen.add(key)
                texts.append(chunk.text)

        if texts:
            addition = " ".join(texts).strip()
            self.full_transcript = f"{self.full_transcript} {addition}".strip()
            logger.info(
                f"[Transcript] Committed {len(texts)} unique chunks, "
                f"{len(self.full_transcript)} total chars"
            )
        else:
            logger.warning("[Transcript] No valid transcript chunks to commit")

        self.chunks.extend(ordered)
        self._pending = []
        return self.full_transcript

    def flush(self) -> str:
        self._pending.extend(self.processor.flush_partials())
        return self.commit()

    def clear(self) -> None:
        self.processor.clear()
        self.full_transcript = ""
        self.chunks = []
        self._pending = []
