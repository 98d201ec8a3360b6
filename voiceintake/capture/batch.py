"""Record-then-transcribe backend: audio is held in memory until the gesture ends."""

import asyncio
import logging
from typing import Optional

from ..audio.encoder import AudioEncoder
from ..audio.recorder import AudioRecorder
from ..errors import CaptureError, CaptureErrorKind, TranscriptionError
from ..models.capture import CaptureSession
from ..transcription.base import BatchTranscriber
from ..transcription.buffer import TranscriptBuffer
from .base import CaptureBackend, InterruptCallback

logger = logging.getLogger(__name__)


class BatchCaptureBackend(CaptureBackend):
    """Records while holding; on stop the clip is encoded and transcribed as one final fragment."""

    name = "batch"
    supports_interim = False

    def __init__(self, recorder: AudioRecorder, transcriber: BatchTranscriber,
                 encoder: Optional[AudioEncoder] = None):
        self.recorder = recorder
        self.transcriber = transcriber
        self.encoder = encoder or AudioEncoder()

        self._buffer: Optional[TranscriptBuffer] = None
        self._session: Optional[CaptureSession] = None
        self._language = "en"

    async def start(self, buffer: TranscriptBuffer, session: CaptureSession, language: str,
                    on_interrupted: Optional[InterruptCallback] = None) -> None:
        await self.recorder.start()
        self._buffer = buffer
        self._session = session
        self._language = language
        logger.info(f"Batch capture {session.capture_id} recording")

    async def stop(self) -> None:
        if self._session is None:
            return
        buffer, session = self._buffer, self._session
        self._buffer = None
        self._session = None

        raw_audio = await self.recorder.stop()
        if not raw_audio:
            logger.info(f"Batch capture {session.capture_id} recorded nothing")
            return

        pcm_container = await asyncio.to_thread(self.encoder.encode, raw_audio)

        try:
            text = await self.transcriber.transcribe(pcm_container, self._language)
        except TranscriptionError as e:
            kind = CaptureErrorKind.NETWORK if e.network else CaptureErrorKind.GENERIC
            logger.error(f"Batch transcription failed for {session.capture_id}: {e}")
            raise CaptureError(kind, str(e)) from e

        session.results_received += 1
        buffer.append_final(text)

    def cancel(self) -> None:
        if self._session is None:
            return
        self.recorder.cancel()
        self._buffer = None
        self._session = None
