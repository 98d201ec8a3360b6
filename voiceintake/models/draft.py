"""Draft transcript models shared by the buffer and the review workflow."""

from dataclasses import dataclass
from enum import Enum


class ReviewState(Enum):
    """Where the live draft sits in the review cycle."""
    CAPTURING = "capturing"
    REVIEWING = "reviewing"
    EDITING = "editing"


@dataclass
class DraftTranscript:
    """The single live candidate answer for a session."""
    raw_buffer: str = ""
    interim: str = ""
    review_state: ReviewState = ReviewState.CAPTURING
    committed_text: str = ""

    @property
    def has_pending_draft(self) -> bool:
        return self.review_state != ReviewState.CAPTURING and bool(self.committed_text)

    def clear(self) -> None:
        self.raw_buffer = ""
        self.interim = ""
        self.committed_text = ""
        self.review_state = ReviewState.CAPTURING


class _NoSpeech:
    """Sentinel returned by finalize() when nothing was recognized."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_SPEECH"


NO_SPEECH = _NoSpeech()
