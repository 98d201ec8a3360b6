"""Hold-to-talk voice capture with interchangeable backends."""

from .base import CaptureBackend
from .continuous import ContinuousCaptureBackend, StreamingRecognizer
from .batch import BatchCaptureBackend
from .controller import VoiceCaptureController

__all__ = [
    'CaptureBackend',
    'ContinuousCaptureBackend',
    'StreamingRecognizer',
    'BatchCaptureBackend',
    'VoiceCaptureController',
]
