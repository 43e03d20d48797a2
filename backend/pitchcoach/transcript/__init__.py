from pitchcoach.transcript.cleaner import CleanedTranscript, Turn, clean_transcript, compact_role_transcript
from pitchcoach.transcript.events import SpeechEvent, parse_message
from pitchcoach.transcript.processor import TranscriptChunk, TranscriptCollector, TranscriptProcessor
from pitchcoach.transcript.replay import parse_replay_segments
from pitchcoach.transcript.session import TranscriptSession
from pitchcoach.transcript.text import transcript_checksum

__all__ = [
    'CleanedTranscript',
    'Turn',
    'clean_transcript',
    'compact_role_transcript',
    'SpeechEvent',
    'parse_message',
    'TranscriptChunk',
    'TranscriptCollector',
    'TranscriptProcessor',
    'parse_replay_segments',
    'TranscriptSession',
    'transcript_checksum',
]
