# backend/tests/test_transcript_replay.py

from pitchcoach.transcript.replay import parse_replay_segments


def test_segments_have_estimated_timing():
    long_text = "x" * 60
    transcript = f"You said: Hi there\nProspect said: {long_text}"
    segments = parse_replay_segments(transcript)

    assert segments[0] == {"index": 0, "speaker": "user", "text": "Hi there", "timestamp": 0.0, "duration": 2.0}
    assert segments[1]["speaker"] == "prospect"
    assert segments[1]["timestamp"] == 2.5
    assert segments[1]["duration"] == 3.0


def test_unlabeled_lines_are_skipped_but_keep_their_index():
    transcript = "Call started\nYou said: hello\n\nProspect said: who is it?"
    segments = parse_replay_segments(transcript)
    assert [s["index"] for s in segments] == [1, 2]
    assert [s["speaker"] for s in segments] == ["user", "prospect"]


def test_empty_transcript():
    assert parse_replay_segments("") == []
    assert parse_replay_segments(None) == []
