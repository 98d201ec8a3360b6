"""Continuous recognition backend: a streaming recognizer delivering interim and final results."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Protocol

from ..errors import CaptureError, CaptureErrorKind
from ..language import get_speech_locale
from ..models.capture import CaptureSession, CaptureState
from ..transcription.buffer import TranscriptBuffer
from .base import CaptureBackend, InterruptCallback

logger = logging.getLogger(__name__)


class RecognizerListener(Protocol):
    """Receives recognizer events; always invoked on the event loop thread."""

    def on_result(self, text: str, is_final: bool) -> None:
        ...

    def on_end(self) -> None:
        ...

    def on_error(self, error: CaptureError) -> None:
        ...


class StreamingRecognizer(ABC):
    """A long-lived speech recognizer that may end on its own (e.g. after silence)."""

    @abstractmethod
    def start(self, listener: RecognizerListener, locale: str) -> None:
        """Start recognizing; raises CaptureError if the device or service is unavailable."""

    @abstractmethod
    def stop(self) -> None:
        """Ask the recognizer to flush pending results and then call ``on_end``."""

    @abstractmethod
    def abort(self) -> None:
        """Stop without delivering further events."""

    def close(self) -> None:
        """Release the microphone and client at shutdown."""
        self.abort()


class ContinuousCaptureBackend(CaptureBackend):
    """Streams recognizer results into the buffer while the gesture is held.

    When the recognizer ends by itself while the user is still holding, it
    is restarted (up to ``max_restarts`` times) so that ordinary pauses in
    speech are not reported as "no speech".
    """

    name = "continuous"
    supports_interim = True

    def __init__(self, recognizer: StreamingRecognizer, max_restarts: int = 3,
                 stop_timeout_seconds: float = 2.0):
        self.recognizer = recognizer
        self.max_restarts = max_restarts
        self.stop_timeout_seconds = stop_timeout_seconds

        self._buffer: Optional[TranscriptBuffer] = None
        self._session: Optional[CaptureSession] = None
        self._locale = "en-US"
        self._on_interrupted: Optional[InterruptCallback] = None
        self._ended: Optional[asyncio.Event] = None
        self._error: Optional[CaptureError] = None

    async def start(self, buffer: TranscriptBuffer, session: CaptureSession, language: str,
                    on_interrupted: Optional[InterruptCallback] = None) -> None:
        self._buffer = buffer
        self._session = session
        self._locale = get_speech_locale(language)
        self._on_interrupted = on_interrupted
        self._ended = asyncio.Event()
        self._error = None

        try:
            self.recognizer.start(self, self._locale)
        except CaptureError:
            self._detach()
            raise
        logger.info(f"Continuous capture {session.capture_id} listening ({self._locale})")

    def on_result(self, text: str, is_final: bool) -> None:
        if self._session is None or not self._session.is_active:
            logger.debug("Dropping recognizer result for a finished capture")
            return
        self._session.results_received += 1
        if is_final:
            self._buffer.append_final(text)
        else:
            self._buffer.set_interim(text)

    def on_end(self) -> None:
        session = self._session
        if session is None:
            return

        if session.state == CaptureState.LISTENING and self._error is None:
            if session.restarts < self.max_restarts:
                session.restarts += 1
                logger.info(f"Recognizer ended while holding; restart {session.restarts}/{self.max_restarts}")
                try:
                    self.recognizer.start(self, self._locale)
                    return
                except CaptureError as e:
                    logger.warning(f"Recognizer restart failed: {e}")
                    if session.results_received == 0:
                        self._fail(CaptureError(CaptureErrorKind.RESTART_FAILED, str(e)))
                        return
            else:
                logger.info("Recognizer restart budget exhausted; keeping what was heard")

        self._ended.set()

    def on_error(self, error: CaptureError) -> None:
        if self._session is None:
            return
        logger.warning(f"Recognizer error ({error.kind.value}): {error}")
        self._fail(error)

    def _fail(self, error: CaptureError) -> None:
        self._error = error
        self._ended.set()
        if self._session.state == CaptureState.LISTENING and self._on_interrupted is not None:
            self._on_interrupted(error)

    async def stop(self) -> None:
        if self._session is None:
            return
        if not self._ended.is_set():
            self.recognizer.stop()
            try:
                await asyncio.wait_for(self._ended.wait(), timeout=self.stop_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Recognizer did not end within {self.stop_timeout_seconds}s; aborting")
                self.recognizer.abort()

        error = self._error
        self._detach()
        if error is not None:
            raise error

    def cancel(self) -> None:
        if self._session is None:
            return
        if not self._ended.is_set():
            self.recognizer.abort()
        self._detach()

    def close(self) -> None:
        self.cancel()
        self.recognizer.close()
        logger.info("Continuous capture backend closed")

    def _detach(self) -> None:
        self._session = None
        self._buffer = None
        self._on_interrupted = None
