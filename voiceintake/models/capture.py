"""Capture session models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class CaptureState(Enum):
    """Lifecycle of one hold-to-talk capture."""
    IDLE = "idle"
    LISTENING = "listening"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class CaptureSession:
    """One hold-to-talk gesture bound to a single backend run."""
    backend_name: str
    capture_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: CaptureState = CaptureState.IDLE
    started_at: datetime = field(default_factory=datetime.now)
    stopped_at: Optional[datetime] = None
    restarts: int = 0
    results_received: int = 0

    @property
    def is_active(self) -> bool:
        return self.state in (CaptureState.LISTENING, CaptureState.STOPPING)
