"""Capture backend interface shared by the continuous and record-batch variants."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from ..errors import CaptureError
from ..models.capture import CaptureSession
from ..transcription.buffer import TranscriptBuffer

logger = logging.getLogger(__name__)

InterruptCallback = Callable[[CaptureError], None]


class CaptureBackend(ABC):
    """One way of turning a hold-to-talk gesture into transcript buffer fragments.

    A backend serves at most one CaptureSession at a time. Everything it
    hears goes through the TranscriptBuffer contract, so callers never
    depend on which variant is configured.
    """

    name = "abstract"
    supports_interim = False

    @abstractmethod
    async def start(self, buffer: TranscriptBuffer, session: CaptureSession, language: str,
                    on_interrupted: Optional[InterruptCallback] = None) -> None:
        """Begin capturing for ``session``.

        Args:
            buffer: Destination for final and interim fragments
            session: The session this run belongs to
            language: Interview language code
            on_interrupted: Called when capture fails while the gesture is still held

        Raises:
            CaptureError: If capture cannot start
        """

    @abstractmethod
    async def stop(self) -> None:
        """End capture; every fragment has reached the buffer when this returns.

        Raises:
            CaptureError: If the capture failed
            AudioDecodeError: If recorded audio could not be encoded
        """

    @abstractmethod
    def cancel(self) -> None:
        """Tear down immediately, discarding anything not yet delivered."""

    def close(self) -> None:
        """Release devices and clients held across captures; the backend is not reused afterwards."""
        self.cancel()
