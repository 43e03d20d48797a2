# backend/pitchcoach/transcript/replay.py
from __future__ import annotations

import re
from typing import Any, Dict, List

_SAID_RE = re.compile(r"^(Prospect said:|You said:)\s*")

GAP_SECONDS = 0.5
MIN_SEGMENT_SECONDS = 2.0
SECONDS_PER_CHAR = 0.05


def parse_replay_segments(transcript: str) -> List[Dict[str, Any]]:
    """
    Turn a "You said: / Prospect said:" transcript into replay segments.

    Timing is estimated from text length since simulated calls don't keep
    word timestamps.
    """
    lines = [l for l in (transcript or "").split("\n") if l.strip()]
    segments: List[Dict[str, Any]] = []
    current = 0.0

    for i, raw in enumerate(lines):
        line = raw.strip()
        m = _SAID_RE.match(line)
        if not m:
            continue
        speaker = "prospect" if m.group(1) == "Prospect said:" else "user"
        text = line[m.end():]
        duration = max(MIN_SEGMENT_SECONDS, len(text) * SECONDS_PER_CHAR)
        segments.append(
            {
                "index": i,
                "speaker": speaker,
                "text": text,
                "timestamp": round(current, 3),
                "duration": round(duration, 3),
            }
        )
        current += duration + GAP_SECONDS

    return segments
