"""Data models for the voiceintake application."""

from .protocol import (
    ChatMessage,
    PatientProfile,
    InterviewIntake,
    QuestionTurn,
    SummaryTurn,
    parse_turn,
)
from .interview import InterviewStatus, InterviewSession, EndReason
from .draft import DraftTranscript, ReviewState, NO_SPEECH
from .capture import CaptureState, CaptureSession

__all__ = [
    "ChatMessage",
    "PatientProfile",
    "InterviewIntake",
    "QuestionTurn",
    "SummaryTurn",
    "parse_turn",
    "InterviewStatus",
    "InterviewSession",
    "EndReason",
    "DraftTranscript",
    "ReviewState",
    "NO_SPEECH",
    "CaptureState",
    "CaptureSession",
]
