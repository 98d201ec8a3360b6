"""Interview session state owned by the turn controller."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .protocol import ChatMessage, InterviewIntake, SummaryTurn


class InterviewStatus(Enum):
    """Top-level interview state."""
    IDLE = "idle"
    AWAITING_AI = "awaiting_ai"
    AWAITING_PATIENT = "awaiting_patient"
    PAUSED = "paused"
    COMPLETE = "complete"


class EndReason(Enum):
    """Why an interview was ended before the generator produced a summary."""
    PATIENT = "patient"
    TIMEOUT = "timeout"


@dataclass
class InterviewSession:
    """Mutable state of one interview.

    Only the InterviewTurnController mutates this object.
    """
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: InterviewStatus = InterviewStatus.IDLE
    transcript: List[ChatMessage] = field(default_factory=list)
    intake: Optional[InterviewIntake] = None
    language: str = "en"
    pause_deadline: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    summary: Optional[SummaryTurn] = None
    awaiting_final_comments: bool = False
    summary_degraded: bool = False
    error: Optional[str] = None

    @property
    def last_message(self) -> Optional[ChatMessage]:
        return self.transcript[-1] if self.transcript else None

    def patient_messages(self) -> List[str]:
        return [m.content for m in self.transcript if m.role == "patient"]
