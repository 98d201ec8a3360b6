"""Google Speech-to-Text batch transcriber."""

import asyncio
import time
import logging
from typing import Optional

from .base import BatchTranscriber
from ..audio.encoder import TARGET_SAMPLE_RATE
from ..errors import TranscriptionError
from ..language import get_speech_locale

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (gax_exceptions.DeadlineExceeded, gax_exceptions.ServiceUnavailable)


class GoogleSpeechTranscriber(BatchTranscriber):
    """Recognizes a whole record-batch clip in one synchronous ``recognize`` call.

    The client is created on first use and the blocking call runs in a
    worker thread so the event loop keeps serving timers and events.
    """

    def __init__(self, credentials_path: Optional[str] = None, timeout_seconds: float = 30.0):
        super().__init__()
        if not credentials_path:
            raise ValueError("Google credentials path is required for the google transcription engine")
        self.credentials_path = credentials_path
        self.timeout_seconds = timeout_seconds
        self.service_name = "Google Speech-to-Text"
        self._client: Optional[speech.SpeechClient] = None

    @property
    def client(self) -> speech.SpeechClient:
        if self._client is None:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
            self._client = speech.SpeechClient(credentials=credentials)
            logger.info(f"Google Speech client ready (project {credentials.project_id})")
        return self._client

    def _recognize(self, pcm_container: bytes, locale: str) -> str:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=TARGET_SAMPLE_RATE,
            audio_channel_count=1,
            language_code=locale,
            enable_automatic_punctuation=True,
        )
        started = time.monotonic()
        try:
            response = self.client.recognize(config=config, audio=speech.RecognitionAudio(content=pcm_container),
                                             timeout=self.timeout_seconds)
        except _NETWORK_ERRORS as e:
            logger.error(f"Google Speech unreachable: {e}")
            raise TranscriptionError(f"Google Speech unavailable: {e}", network=True) from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google Speech rejected the clip: {e}")
            raise TranscriptionError(f"Google Speech API error: {e}") from e

        parts = [r.alternatives[0].transcript.strip() for r in response.results if r.alternatives]
        logger.debug(f"Recognized {len(parts)} segments in {time.monotonic() - started:.2f}s")
        return " ".join(parts)

    async def transcribe(self, pcm_container: bytes, language: str) -> str:
        text = await asyncio.to_thread(self._recognize, pcm_container, get_speech_locale(language))
        self.requests_completed += 1
        return text.strip()
