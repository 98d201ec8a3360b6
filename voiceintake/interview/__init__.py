"""Interview turn state machine, protocol clients and pause timers."""

from .controller import InterviewTurnController
from .protocol import InterviewProtocolClient, classify_error
from .mock_protocol import MockInterviewProtocol
from .timers import PauseTimer

__all__ = [
    'InterviewTurnController',
    'InterviewProtocolClient',
    'classify_error',
    'MockInterviewProtocol',
    'PauseTimer',
]
