# backend/pitchcoach/transcript/text.py
"""
String heuristics shared by the live collectors and the end-of-call cleaner.

Everything here is pure and cheap: no I/O, no state.
"""
from __future__ import annotations

import re
from typing import FrozenSet, List

# Short words people legitimately double up on ("no, no", "the the" from STT is rare)
ALLOWED_REPEATS: FrozenSet[str] = frozenset(
    {"the", "a", "an", "and", "or", "but", "yes", "no", "i", "you", "we", "they"}
)

_KEY_PUNCT_RE = re.compile(r"[.,!?;:]+")
_WS_RE = re.compile(r"\s+")
_DUP_PUNCT_RE = re.compile(r"([.!?])\s*[.!?]+")
_LEADING_PUNCT_RE = re.compile(r"^[.!?]+\s*")
_NON_WORD_RE = re.compile(r"[^\w\s]")

_INT32 = 2 ** 32
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize_key(text: str) -> str:
    """Comparison key used for deduplication: lowercase, no punctuation, single spaces."""
    if not text:
        return ""
    key = _KEY_PUNCT_RE.sub("", text.lower())
    return _WS_RE.sub(" ", key).strip()


def normalize_utterance(text: str) -> str:
    """
    Tidy one final utterance from the speech recognizer.

    Collapses whitespace and punctuation runs ("?!." -> "?"), drops leading
    punctuation. The first mark of a punctuation run is the one kept, so
    questions stay questions.
    """
    if not text:
        return ""
    s = _WS_RE.sub(" ", text.strip())
    s = _DUP_PUNCT_RE.sub(r"\1", s)
    s = _LEADING_PUNCT_RE.sub("", s)
    return s.strip()


def _word_key(word: str) -> str:
    return word.lower().strip(".,!?;:\"'")


def dedupe_adjacent_words(text: str, allowed_repeats: FrozenSet[str] = ALLOWED_REPEATS) -> str:
    """Drop a word that repeats the one before it ("we we need" -> "we need" unless allowed)."""
    if not text or not text.strip():
        return ""

    words = text.strip().split()
    out: List[str] = []
    prev = ""
    for word in words:
        current = word.lower()
        if current != prev or current in allowed_repeats:
            out.append(word)
        prev = current
    return " ".join(out)


def collapse_repeated_ngrams(text: str, max_n: int = 6, min_chars: int = 4) -> str:
    """
    Remove immediately repeated word n-grams, longest first.

    "I think I think we should" -> "I think we should". The later copy is kept
    so trailing punctuation survives. Matching ignores case and edge punctuation.
    """
    if not text:
        return ""

    words = text.split()
    changed = True
    while changed:
        changed = False
        for n in range(min(max_n, len(words) // 2), 1, -1):
            i = 0
            while i + 2 * n <= len(words):
                first = [_word_key(w) for w in words[i:i + n]]
                second = [_word_key(w) for w in words[i + n:i + 2 * n]]
                if first == second and len(" ".join(first)) >= min_chars:
                    del words[i:i + n]
                    changed = True
                else:
                    i += 1
    return " ".join(words)


def _rolling_hash(text: str) -> int:
    # 31-multiplier hash over UTF-16 code units, wrapped to signed 32-bit
    h = 0
    raw = text.encode("utf-16-le")
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = (h * 31 + unit) % _INT32
    if h >= 2 ** 31:
        h -= _INT32
    return h


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def transcript_checksum(text: str) -> str:
    """Integrity tag stored next to a persisted transcript."""
    return _to_base36(abs(_rolling_hash(text or "")))


def chunk_hash(text: str, speaker: str, timestamp_ms: int) -> str:
    """Idempotency key for a final chunk: same words, same speaker, same second."""
    normalized = _WS_RE.sub(" ", _NON_WORD_RE.sub("", (text or "").lower().strip()))
    return transcript_checksum(f"{normalized}-{speaker}-{int(timestamp_ms) // 1000}")
