"""Exception types shared across the interview, capture and transcription layers."""

from enum import Enum
from typing import Optional


class IntakeError(Exception):
    """Base class for all voiceintake errors."""


class IntakeValidationError(IntakeError, ValueError):
    """Raised when the intake form (chief complaint, profile) fails validation."""

    def __init__(self, message: str, fields: Optional[list] = None):
        super().__init__(message)
        self.fields = fields or []


class InvalidTransitionError(IntakeError):
    """Raised when an operation is not valid in the current state."""


class AudioDecodeError(IntakeError):
    """Raised when a captured clip cannot be decoded into samples."""

    USER_MESSAGE = "Unable to process audio. Please try again."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.USER_MESSAGE)
        self.detail = detail


class CaptureErrorKind(Enum):
    """Distinguishable voice capture failures."""
    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    NETWORK = "network"
    NO_SPEECH = "no_speech"
    RESTART_FAILED = "restart_failed"
    GENERIC = "generic"


CAPTURE_ERROR_MESSAGES = {
    CaptureErrorKind.PERMISSION_DENIED: "Microphone access was denied. Allow microphone access and try again.",
    CaptureErrorKind.DEVICE_UNAVAILABLE: "No microphone is available. Check that one is connected and try again.",
    CaptureErrorKind.NETWORK: "A network problem interrupted transcription. Check your connection and try again.",
    CaptureErrorKind.NO_SPEECH: "No speech was detected. Please try again.",
    # A failed restart is reported to the patient exactly like silence.
    CaptureErrorKind.RESTART_FAILED: "No speech was detected. Please try again.",
    CaptureErrorKind.GENERIC: "Something went wrong with voice input. Please try again.",
}


class CaptureError(IntakeError):
    """Non-fatal voice capture failure carrying a user-facing message."""

    def __init__(self, kind: CaptureErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(detail or CAPTURE_ERROR_MESSAGES[kind])

    @property
    def user_message(self) -> str:
        return CAPTURE_ERROR_MESSAGES[self.kind]


class TranscriptionError(IntakeError):
    """Remote transcription or cleanup call failed."""

    def __init__(self, message: str, network: bool = False):
        super().__init__(message)
        self.network = network


class ProtocolError(IntakeError):
    """The interview protocol request failed."""

    DEFAULT_MESSAGE = "Unable to continue the interview right now."

    def __init__(self, message: str = DEFAULT_MESSAGE, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def user_message(self) -> str:
        return str(self)


class RateLimitError(ProtocolError):
    """The interview generator refused the request because of a quota or rate limit."""

    USER_MESSAGE = "The AI service has reached its request limit. Please wait and try again."

    def __init__(self, message: str = USER_MESSAGE, status: Optional[int] = 429,
                 retry_after_seconds: Optional[int] = None):
        super().__init__(message, status)
        self.retry_after_seconds = retry_after_seconds
