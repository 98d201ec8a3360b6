"""Speech fragment buffering, cleanup and batch transcription."""

from .buffer import TranscriptBuffer
from .cleaner import TranscriptCleaner, CleaningEngine
from .base import BatchTranscriber
from .remote import HttpCleaningEngine, HttpTranscriber

__all__ = [
    'TranscriptBuffer',
    'TranscriptCleaner',
    'CleaningEngine',
    'BatchTranscriber',
    'HttpCleaningEngine',
    'HttpTranscriber',
]
