# backend/pitchcoach/analysis/moments.py
"""Rule-based extraction of practice moments from a finished call."""
import re
from typing import List

MAX_MOMENTS = 5
MIN_LINE_CHARS = 10
MIN_SECTION_CHARS = 50
SUMMARY_CHARS = 80

_OBJECTION_RES = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"but\s+(?:i|we|the)",
        r"however\s+(?:i|we|the)",
        r"not\s+(?:sure|interested|ready)",
        r"(?:can't|cannot)\s+(?:afford|do)",
        r"(?:don't|do\s+not)\s+(?:need|want|think)",
        r"already\s+(?:have|using|work)",
        r"too\s+(?:expensive|costly|much)",
    )
]

_QUESTION_RES = [
    re.compile(r"\?$"),
    re.compile(r"^(?:what|how|when|where|why|who)\s+", re.IGNORECASE),
    re.compile(r"can\s+you\s+(?:tell|explain|clarify)", re.IGNORECASE),
    re.compile(r"could\s+you\s+(?:help|show)", re.IGNORECASE),
]

_CLOSING_RES = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(?:ready\s+to|want\s+to|let's)\s+(?:move|proceed|start|begin)",
        r"(?:sounds\s+good|looks\s+good|that\s+works)",
        r"(?:when\s+can|how\s+do)\s+(?:we|i)\s+(?:start|begin)",
        r"(?:i'm|we're)\s+interested",
    )
]

# (type, label, summary prefix, patterns), checked in order
_MOMENT_RULES = (
    ("objection", "Objection Handling", "Objection", _OBJECTION_RES),
    ("question", "Question Handling", "Question", _QUESTION_RES),
    ("closing", "Closing Opportunity", "Closing opportunity", _CLOSING_RES),
)

NEGATIVE_WORDS = ("no", "not", "never", "impossible", "can't", "won't", "refuse")


def calculate_difficulty(line: str, next_lines: str) -> int:
    """1 + up to 2 for negative wording + 1 for length, capped at 5."""
    line_l, next_l = line.lower(), next_lines.lower()
    negatives = sum(1 for w in NEGATIVE_WORDS if w in line_l or w in next_l)
    difficulty = 1 + min(negatives, 2)
    if len(line) > 100 or len(next_lines) > 200:
        difficulty += 1
    return min(difficulty, 5)


def difficulty_label(score: int) -> str:
    if score <= 2:
        return "easy"
    if score <= 3:
        return "medium"
    return "hard"


def _summary(prefix: str, text: str) -> str:
    ellipsis = "..." if len(text) > SUMMARY_CHARS else ""
    return f'{prefix}: "{text[:SUMMARY_CHARS]}{ellipsis}"'


def extract_moments(transcript: str) -> List[dict]:
    transcript = transcript or ""
    lines = [l for l in transcript.split("\n") if len(l.strip()) > MIN_LINE_CHARS]
    moments: List[dict] = []

    for i, raw in enumerate(lines):
        line = raw.strip()
        for moment_type, label, prefix, patterns in _MOMENT_RULES:
            if not any(p.search(line) for p in patterns):
                continue
            next_lines = " ".join(lines[i + 1:i + 4])
            start = max(0, transcript.find(line))
            moments.append(
                {
                    "id": f"moment_{len(moments) + 1}",
                    "type": moment_type,
                    "label": label,
                    "start_char": start,
                    "end_char": start + len(line),
                    "summary": _summary(prefix, line),
                    "full_text": "\n".join(lines[max(0, i - 1):i + 3]),
                    "difficulty": difficulty_label(calculate_difficulty(line, next_lines)),
                }
            )
            break

    if not moments:
        sections = [s for s in re.split(r"[.!?]{2,}", transcript) if len(s.strip()) > MIN_SECTION_CHARS]
        for i, raw in enumerate(sections[:3]):
            section = raw.strip()
            if i == 0:
                moment_type, label = "opening", "Opening"
            elif i == len(sections) - 1:
                moment_type, label = "closing", "Closing"
            else:
                moment_type, label = "general", "General Practice"
            moments.append(
                {
                    "id": f"moment_{i + 1}",
                    "type": moment_type,
                    "label": label,
                    "start_char": i * 100,
                    "end_char": (i + 1) * 100,
                    "summary": _summary("Practice moment", section),
                    "full_text": section,
                    "difficulty": difficulty_label(calculate_difficulty(section, "")),
                }
            )

    return sorted(moments[:MAX_MOMENTS], key=lambda m: m["start_char"])
