"""Turns hold-to-talk gestures into reviewed draft answers."""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..audio.playback import SpeechPlayback
from ..errors import AudioDecodeError, CaptureError, CaptureErrorKind, InvalidTransitionError
from ..models.capture import CaptureSession, CaptureState
from ..models.draft import NO_SPEECH, ReviewState
from ..models.events import CaptureStateEvent, ErrorEvent
from ..publisher import EventPublisher
from ..review.workflow import DraftReviewWorkflow
from ..transcription.buffer import TranscriptBuffer
from ..transcription.cleaner import TranscriptCleaner
from .base import CaptureBackend

logger = logging.getLogger(__name__)


class VoiceCaptureController:
    """Owns the CaptureSession and the transcript buffer for one interview.

    At most one CaptureSession exists; starting a new one tears the previous
    one down first. Failures are reported through ``last_error`` and the
    ``capture_error`` topic and never propagate to the interview.
    """

    def __init__(
        self,
        backend: CaptureBackend,
        buffer: TranscriptBuffer,
        review: DraftReviewWorkflow,
        cleaner: TranscriptCleaner,
        playback: Optional[SpeechPlayback] = None,
        language: str = "en",
        turn_gate: Optional[Callable[[], bool]] = None,
        state_publisher: Optional[EventPublisher] = None,
        error_publisher: Optional[EventPublisher] = None,
    ):
        self.backend = backend
        self.buffer = buffer
        self.review = review
        self.cleaner = cleaner
        self.playback = playback
        self.language = language
        self.turn_gate = turn_gate
        self.state_publisher = state_publisher
        self.error_publisher = error_publisher

        self.session: Optional[CaptureSession] = None
        self.last_error: Optional[str] = None
        self._seed = ""

        logger.info(f"VoiceCaptureController using the {backend.name} backend")

    @property
    def is_listening(self) -> bool:
        return self.session is not None and self.session.state == CaptureState.LISTENING

    def check_can_start(self, allow_while_reviewing: bool = False) -> None:
        """Raise InvalidTransitionError if a capture may not start now."""
        if self.playback is not None and self.playback.is_speaking:
            raise InvalidTransitionError("Cannot capture while a question is being read aloud")
        if self.review.is_submitting:
            raise InvalidTransitionError("Cannot capture while an answer is being submitted")
        if self.review.state != ReviewState.CAPTURING and not allow_while_reviewing:
            raise InvalidTransitionError("A draft is already under review")
        if self.turn_gate is not None and not self.turn_gate():
            raise InvalidTransitionError("The interview is not waiting for an answer")

    async def start(self, allow_while_reviewing: bool = False) -> Optional[CaptureSession]:
        """Begin a capture for a hold-to-talk gesture.

        Args:
            allow_while_reviewing: Re-enter capture while a draft is under review;
                new speech is appended to that draft

        Returns:
            The active session, or None when the device could not be opened
        """
        self.check_can_start(allow_while_reviewing)

        if self.session is not None:
            logger.info(f"Tearing down capture {self.session.capture_id} before starting a new one")
            self.cancel()

        draft = self.buffer.draft
        self._seed = draft.committed_text if draft.has_pending_draft else ""
        self.buffer.start(self._seed)
        self.last_error = None

        session = CaptureSession(backend_name=self.backend.name)
        session.state = CaptureState.LISTENING
        self.session = session
        try:
            await self.backend.start(self.buffer, session, self.language, self._on_interrupted)
        except CaptureError as e:
            self._finish(session)
            self._report(e)
            return None

        self._publish_state(session)
        return session

    async def stop(self) -> Optional[str]:
        """End the gesture, finalize the buffer and hand the cleaned text to review.

        Returns:
            The cleaned candidate, or None if nothing usable was captured
        """
        session = self.session
        if session is None or session.state != CaptureState.LISTENING:
            logger.debug("Stop requested with no active capture")
            return None

        session.state = CaptureState.STOPPING
        self._publish_state(session)
        try:
            await self.backend.stop()
        except CaptureError as e:
            self._finish(session)
            self._report(e)
            return None
        except AudioDecodeError as e:
            self._finish(session)
            self._report(e)
            return None

        self._finish(session)
        candidate = self.buffer.finalize()
        if candidate is NO_SPEECH:
            self._report(CaptureError(CaptureErrorKind.NO_SPEECH))
            return None

        cleaned = await self.cleaner.clean(candidate, self.language)
        if not cleaned:
            self._report(CaptureError(CaptureErrorKind.NO_SPEECH))
            return None
        self.review.set_candidate(cleaned)
        self._seed = ""
        return cleaned

    def cancel(self) -> None:
        """Abandon the active capture (pause, reset); a pending draft survives."""
        session = self.session
        if session is None:
            return
        self.backend.cancel()
        self.buffer.set_interim("")
        self._finish(session)
        self._restore_seed()
        logger.info(f"Capture {session.capture_id} cancelled")

    def close(self) -> None:
        """Cancel any capture and release the backend at shutdown."""
        self.cancel()
        self.backend.close()

    def _on_interrupted(self, error: CaptureError) -> None:
        session = self.session
        if session is None:
            return
        self.backend.cancel()
        self.buffer.set_interim("")
        self._finish(session)
        self._report(error)

    def _finish(self, session: CaptureSession) -> None:
        session.state = CaptureState.STOPPED
        session.stopped_at = datetime.now()
        if self.session is session:
            self.session = None
        self._publish_state(session)
        logger.info(f"Capture {session.capture_id} stopped after {session.results_received} results, "
                    f"{session.restarts} restarts")

    def _restore_seed(self) -> None:
        if self._seed:
            self.review.restore(self._seed)
            self._seed = ""

    def _report(self, error: Exception) -> None:
        if isinstance(error, CaptureError):
            message, kind = error.user_message, error.kind.value
        else:
            message, kind = AudioDecodeError.USER_MESSAGE, "audio_decode"
        self.last_error = message
        logger.warning(f"Capture failed ({kind}): {error}")
        self._restore_seed()
        if self.error_publisher is not None:
            self.error_publisher.publish(ErrorEvent(source="capture", message=message, kind=kind))

    def _publish_state(self, session: CaptureSession) -> None:
        if self.state_publisher is not None:
            self.state_publisher.publish(CaptureStateEvent(
                capture_id=session.capture_id,
                backend=session.backend_name,
                state=session.state.value,
            ))
