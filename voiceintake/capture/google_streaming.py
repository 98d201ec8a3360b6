"""Google streaming recognizer for the continuous capture backend."""

import asyncio
import logging
from threading import Thread, Event
from typing import Optional

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

from ..audio.recorder import classify_device_error
from ..errors import CaptureError, CaptureErrorKind
from .continuous import RecognizerListener, StreamingRecognizer

logger = logging.getLogger(__name__)


class GoogleStreamingRecognizer(StreamingRecognizer):
    """Streams microphone audio to Google and relays interim/final results.

    Recognition runs in a worker thread; every event is marshalled back onto
    the event loop that called ``start``. Runs are numbered so that events
    from an aborted run are never delivered.
    """

    def __init__(self, credentials_path: str, sample_rate: int = 16000, chunk_size: int = 1600,
                 input_device: Optional[int] = None, single_utterance: bool = True):
        """Initialize recognizer.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Microphone sample rate sent to Google
            chunk_size: Frames per streaming request (100 ms at 16 kHz)
            input_device: PyAudio device index, or None for the default input
            single_utterance: End the stream after one utterance; the backend restarts while held
        """
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.input_device = input_device
        self.single_utterance = single_utterance

        self.client = None
        self.pyaudio_instance = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._listener: Optional[RecognizerListener] = None
        self._generation = 0
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def _ensure_client(self) -> None:
        if self.client is None:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
            self.client = speech.SpeechClient(credentials=credentials)
            logger.info(f"Google streaming client ready (project: {credentials.project_id})")

    def _open_microphone(self):
        try:
            import pyaudio
        except ImportError as e:
            raise CaptureError(CaptureErrorKind.DEVICE_UNAVAILABLE, f"PyAudio is not installed: {e}") from e

        try:
            if self.pyaudio_instance is None:
                self.pyaudio_instance = pyaudio.PyAudio()
            return self.pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.input_device,
                frames_per_buffer=self.chunk_size,
            )
        except OSError as e:
            raise classify_device_error(e) from e

    def start(self, listener: RecognizerListener, locale: str) -> None:
        self._loop = asyncio.get_running_loop()
        self._ensure_client()
        stream = self._open_microphone()

        self._generation += 1
        self._listener = listener
        self._stop_event = Event()
        self._thread = Thread(target=self._run, args=(self._generation, stream, locale, self._stop_event),
                              daemon=True)
        self._thread.name = f"GoogleStreamingRecognizer-{self._generation}"
        self._thread.start()
        logger.info(f"Streaming recognition run {self._generation} started ({locale})")

    def stop(self) -> None:
        self._stop_event.set()

    def abort(self) -> None:
        self._generation += 1
        self._stop_event.set()
        self._listener = None

    def _deliver(self, generation: int, callback: str, *args) -> None:
        def deliver():
            if generation != self._generation or self._listener is None:
                return
            getattr(self._listener, callback)(*args)

        self._loop.call_soon_threadsafe(deliver)

    def _audio_chunks(self, stream, stop_event: Event):
        while not stop_event.is_set():
            yield stream.read(self.chunk_size, exception_on_overflow=False)

    def _run(self, generation: int, stream, locale: str, stop_event: Event) -> None:
        """Internal method: one streaming_recognize call in a background thread."""
        streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sample_rate,
                language_code=locale,
                enable_automatic_punctuation=True,
            ),
            interim_results=True,
            single_utterance=self.single_utterance,
        )
        requests = (speech.StreamingRecognizeRequest(audio_content=chunk)
                    for chunk in self._audio_chunks(stream, stop_event))

        try:
            responses = self.client.streaming_recognize(config=streaming_config, requests=requests)
            for response in responses:
                for result in response.results:
                    if not result.alternatives:
                        continue
                    self._deliver(generation, "on_result", result.alternatives[0].transcript, result.is_final)
        except (gax_exceptions.ServiceUnavailable, gax_exceptions.DeadlineExceeded) as e:
            logger.error(f"Google streaming unavailable: {e}")
            self._deliver(generation, "on_error", CaptureError(CaptureErrorKind.NETWORK, str(e)))
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google streaming API error: {e}")
            self._deliver(generation, "on_error", CaptureError(CaptureErrorKind.GENERIC, str(e)))
        except OSError as e:
            logger.error(f"Microphone read failed: {e}")
            self._deliver(generation, "on_error", classify_device_error(e))
        finally:
            stop_event.set()
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self._deliver(generation, "on_end")
            logger.debug(f"Streaming recognition run {generation} finished")

    def close(self) -> None:
        self.abort()
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
