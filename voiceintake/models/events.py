"""Event models published on the pub/sub bus."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

TOPIC_INTERVIEW_STATUS = "interview_status"
TOPIC_INTERVIEW_MESSAGE = "interview_message"
TOPIC_INTERVIEW_ERROR = "interview_error"
TOPIC_INTERVIEW_COUNTDOWN = "interview_countdown"
TOPIC_CAPTURE_STATE = "capture_state"
TOPIC_CAPTURE_ERROR = "capture_error"
TOPIC_DRAFT_STATE = "draft_state"


@dataclass
class StatusEvent:
    """Interview status transition."""
    session_id: str
    previous: str
    current: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class MessageEvent:
    """A transcript entry was appended, removed or edited."""
    session_id: str
    index: int
    role: str
    content: str
    action: str = "appended"  # "appended" | "removed" | "edited"
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ErrorEvent:
    """A non-fatal error surfaced to the patient."""
    source: str
    message: str
    kind: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class CountdownEvent:
    """Seconds left before an abandoned paused interview is ended."""
    session_id: str
    remaining_seconds: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class CaptureStateEvent:
    capture_id: str
    backend: str
    state: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class DraftStateEvent:
    review_state: str
    text: str
    submitting: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
