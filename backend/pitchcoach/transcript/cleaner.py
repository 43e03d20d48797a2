# backend/pitchcoach/transcript/cleaner.py
"""
End-of-call transcript reconstruction.

Transcripts reaching analysis are messy: the voice agent sometimes reads its
own prompt back (so persona/instruction blocks leak into the text), the
recognizer stutters, the same utterance arrives twice, and recordings
transcribed offline carry no speaker labels at all.

clean_transcript() is best effort. It never raises on odd input, and when
nothing survives it hands back the raw text as a single turn.

Steps, in order:
  (a) strip injected prompt sections (header line through the next blank or
      speaker-labeled line)
  (b) drop meta/guideline lines and over-long lines
  (c) parse speaker labels and merge consecutive same-speaker lines
  (d) remove stutters and repeated n-grams inside each turn
  (e) with no labels at all, alternate speakers, guessing the first from
      whether the opening utterance is a question
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pitchcoach.transcript.text import (
    collapse_repeated_ngrams,
    dedupe_adjacent_words,
    normalize_key,
)
from pitchcoach.utils.logger import logger

USER = "user"
PROSPECT = "prospect"

DEFAULT_MAX_LINE_LENGTH = 400

# Section headers used by the prospect persona prompts
SECTION_HEADERS = (
    "CORE PERSONALITY",
    "ENHANCED PROFILE TRAITS",
    "CURRENT PERSONALITY STATE",
    "OBJECTION PATTERNS",
    "BUYING SIGNALS TO SHOW",
    "BUYING SIGNALS",
    "CONVERSATION CONTEXT",
    "BEHAVIORAL INSTRUCTIONS",
    "REALISM GUIDELINES",
    "ROLE GUARDRAILS",
    "FEW-SHOT CALIBRATION",
    "GAMIFICATION MODE",
    "CHALLENGE MODE",
    "CONVERSATION GUIDELINES",
    "PERSONALITY",
    "SYSTEM PROMPT",
    "INSTRUCTIONS",
    "SCENARIO",
    "IDENTITY",
)

_HEADER_ALT = "|".join(re.escape(h) for h in sorted(SECTION_HEADERS, key=len, reverse=True))
_HEADER_LINE_RE = re.compile(rf"^\s*(?:#+\s*)?(?:{_HEADER_ALT})\s*:")
# Consumes the whole header so "CORE PERSONALITY:" is not split before "PERSONALITY:"
_HEADER_INLINE_RE = re.compile(rf"(^|\s+)((?:{_HEADER_ALT}):)", re.MULTILINE)

_SPEAKER_LABELS: Dict[str, str] = {
    "you said": USER,
    "you": USER,
    "user": USER,
    "caller": USER,
    "rep": USER,
    "sales rep": USER,
    "salesperson": USER,
    "seller": USER,
    "prospect said": PROSPECT,
    "prospect": PROSPECT,
    "assistant": PROSPECT,
    "ai": PROSPECT,
    "bot": PROSPECT,
    "agent": PROSPECT,
    "customer": PROSPECT,
    "buyer": PROSPECT,
}

_LABEL_ALT = "|".join(re.escape(k) for k in sorted(_SPEAKER_LABELS, key=len, reverse=True))
_LABEL_LINE_RE = re.compile(rf"^\s*(?:\*\*)?({_LABEL_ALT})(?:\*\*)?\s*(?:\([^)]*\))?\s*:\s*", re.IGNORECASE)
# Mid-line labels must be capitalized so ordinary words ("thank you: ...") don't split turns
_LABEL_INLINE_RE = re.compile(
    r"(?<=\S)\s+(?=(?:You said|Prospect said|User|USER|Caller|Rep|Salesperson|Seller|"
    r"Assistant|ASSISTANT|AI|Prospect|Bot|Agent|Customer|Buyer)\s*:)"
)

_META_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\byou are an ai\b",
        r"\bas an ai\b",
        r"\bai prospect\b",
        r"\bsales training simulation\b",
        r"\bstay in character\b",
        r"\bsystem prompt\b",
        r"^\s*remember\s*:",
        r"\b(?:conversation|realism|behavioral|role)\s+(?:guidelines|instructions|guardrails)\b",
        r"\bgamification\b",
        r"\bfew-shot\b",
        r"\bpersonality (?:state|traits)\b",
        r"\bbuying signals? to show\b",
        r"\bobjection patterns?\b",
        r"\b(?:first|system) message\b",
        r"\{\{[^}]*\}\}",
        r"^\s*\[[^\]]*(?:system|instruction|prompt|metadata)[^\]]*\]\s*$",
        r"^\s*(?:[-*•]|\d+[.)])\s+(?:keep|stay|use|show|give|allow|end|start|display|remember|"
        r"maintain|demonstrate|challenge|gradually|never|do not|don't|refer|respond|be|act|present|focus)\b",
    )
]

_QUESTION_START_RE = re.compile(
    r"^(?:what|who|whom|whose|when|where|why|how|which|is|are|am|was|were|do|does|did|"
    r"can|could|would|will|should|may|might|have|has)\b",
    re.IGNORECASE,
)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+(?=\S)")


@dataclass
class Turn:
    speaker: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"speaker": self.speaker, "text": self.text}


@dataclass
class CleanedTranscript:
    turns: List[Turn] = field(default_factory=list)
    inferred_speakers: bool = False
    fallback_used: bool = False
    removed_sections: int = 0
    removed_lines: int = 0

    @property
    def text(self) -> str:
        return self.render()

    def render(self, style: str = "label") -> str:
        """
        style="label": "User: ..." / "Prospect: ..."
        style="said":  "You said: ..." / "Prospect said: ..."
        """
        if style == "said":
            names = {USER: "You said", PROSPECT: "Prospect said"}
        else:
            names = {USER: "User", PROSPECT: "Prospect"}
        return "\n".join(f"{names.get(t.speaker, 'User')}: {t.text}" for t in self.turns)

    def words_by_speaker(self) -> Dict[str, int]:
        counts = {USER: 0, PROSPECT: 0}
        for t in self.turns:
            counts[t.speaker] = counts.get(t.speaker, 0) + len(t.text.split())
        return counts

    def to_dict(self) -> dict:
        return {
            "turns": [t.to_dict() for t in self.turns],
            "text": self.text,
            "inferred_speakers": self.inferred_speakers,
            "fallback_used": self.fallback_used,
            "removed_sections": self.removed_sections,
            "removed_lines": self.removed_lines,
        }


def looks_like_question(text: str) -> bool:
    s = (text or "").strip()
    if not s:
        return False
    return s.endswith("?") or bool(_QUESTION_START_RE.match(s))


def is_meta_line(line: str) -> bool:
    return any(p.search(line) for p in _META_PATTERNS)


def split_speaker_label(line: str) -> Tuple[Optional[str], str]:
    """
    Return (speaker, content). Repeated labels ("User: User: hi") collapse;
    with conflicting stacked labels the last one wins.
    """
    speaker: Optional[str] = None
    rest = line
    while True:
        m = _LABEL_LINE_RE.match(rest)
        if not m:
            break
        speaker = _SPEAKER_LABELS[m.group(1).lower()]
        rest = rest[m.end():]
    return speaker, rest.strip()


def _explode_lines(raw: str) -> List[str]:
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    text = _HEADER_INLINE_RE.sub(lambda m: m.group(2) if not m.group(1) else "\n\n" + m.group(2), text)
    text = _LABEL_INLINE_RE.sub("\n", text)
    return text.split("\n")


def _strip_sections(lines: List[str]) -> Tuple[List[str], int]:
    kept: List[str] = []
    in_section = False
    sections = 0
    for line in lines:
        if _HEADER_LINE_RE.match(line):
            in_section = True
            sections += 1
            continue
        if in_section:
            speaker, _ = split_speaker_label(line)
            if line.strip() and speaker is None:
                continue
            in_section = False
        kept.append(line)
    return kept, sections


def _clean_turn_text(text: str) -> str:
    return collapse_repeated_ngrams(dedupe_adjacent_words(text)).strip()


def _merge(turns: List[Turn]) -> List[Turn]:
    merged: List[Turn] = []
    for turn in turns:
        if merged and merged[-1].speaker == turn.speaker:
            # Same utterance delivered twice in a row
            if normalize_key(merged[-1].text) == normalize_key(turn.text):
                continue
            merged[-1] = Turn(turn.speaker, f"{merged[-1].text} {turn.text}")
        else:
            merged.append(Turn(turn.speaker, turn.text))
    return merged


def _alternate(units: List[str]) -> List[Turn]:
    speaker = PROSPECT if looks_like_question(units[0]) else USER
    turns = []
    for unit in units:
        turns.append(Turn(speaker, unit))
        speaker = USER if speaker == PROSPECT else PROSPECT
    return turns


def clean_transcript(raw: Optional[str], *, max_line_length: int = DEFAULT_MAX_LINE_LENGTH) -> CleanedTranscript:
    raw = raw or ""
    if not raw.strip():
        return CleanedTranscript()

    lines = _explode_lines(raw)
    lines, sections = _strip_sections(lines)

    content_lines = [l.strip() for l in lines if l.strip()]
    has_labels = any(split_speaker_label(l)[0] is not None for l in content_lines)

    # A single unlabeled blob (typical for recordings transcribed offline)
    if not has_labels and len(content_lines) == 1:
        content_lines = [s.strip() for s in _SENTENCE_SPLIT_RE.split(content_lines[0]) if s.strip()]

    removed = 0
    labeled: List[Tuple[Optional[str], str]] = []
    for line in content_lines:
        speaker, content = split_speaker_label(line)
        if not content:
            continue
        if is_meta_line(content) or len(content) > max_line_length:
            removed += 1
            continue
        labeled.append((speaker, content))

    turns: List[Turn] = []
    inferred = False

    if labeled and any(s is not None for s, _ in labeled):
        first_known = next(s for s, _ in labeled if s is not None)
        current = first_known
        for speaker, content in labeled:
            # Unlabeled lines continue the previous speaker's turn
            if speaker is not None:
                current = speaker
            turns.append(Turn(current, content))
    elif labeled:
        turns = _alternate([c for _, c in labeled])
        inferred = True

    cleaned: List[Turn] = []
    for turn in _merge(turns):
        text = _clean_turn_text(turn.text)
        if text:
            cleaned.append(Turn(turn.speaker, text))
    cleaned = _merge(cleaned)

    if not cleaned:
        logger.warning("[Transcript] Cleanup removed everything, falling back to raw text")
        return CleanedTranscript(
            turns=[Turn(USER, " ".join(raw.split()))],
            fallback_used=True,
            removed_sections=sections,
            removed_lines=removed,
        )

    if sections or removed:
        logger.info(f"[Transcript] Cleanup stripped {sections} prompt sections and {removed} meta lines")

    return CleanedTranscript(
        turns=cleaned,
        inferred_speakers=inferred,
        removed_sections=sections,
        removed_lines=removed,
    )


_ROLE_DUP_RE = {
    "Assistant": re.compile(r"Assistant:\s*Assistant:"),
    "User": re.compile(r"User:\s*User:"),
}


def compact_role_transcript(raw: str, max_lines: int = 160, max_chars: int = 6000) -> str:
    """
    Trim a "User:/Assistant:" transcript to fit a coaching prompt.

    Keeps the end of the call, where objections and the close usually are.
    """
    text = (raw or "").replace("\r", "")
    for label, pattern in _ROLE_DUP_RE.items():
        text = pattern.sub(f"{label}:", text)
    text = re.sub(r"\s*(Assistant:)", r"\n\1", text)
    text = re.sub(r"\s*(User:)", r"\n\1", text)

    compact: List[str] = []
    for line in (l.strip() for l in text.split("\n")):
        if line and (not compact or compact[-1] != line):
            compact.append(line)

    if len(compact) > max_lines:
        compact = compact[-max_lines:]

    out = "\n".join(compact)
    if len(out) > max_chars:
        out = out[-max_chars:]
    return out
