"""Builds the interview component graph from configuration."""

import logging
from typing import Any, Dict, Optional, Union

from ..audio.encoder import AudioEncoder
from ..audio.playback import SilentPlayback
from ..audio.recorder import MicrophoneRecorder
from ..capture.base import CaptureBackend
from ..capture.batch import BatchCaptureBackend
from ..capture.continuous import ContinuousCaptureBackend
from ..capture.controller import VoiceCaptureController
from ..capture.google_streaming import GoogleStreamingRecognizer
from ..config import IntakeConfig
from ..interview.controller import InterviewTurnController
from ..interview.mock_protocol import MockInterviewProtocol
from ..interview.protocol import InterviewProtocol, InterviewProtocolClient
from ..models import events
from ..models.draft import DraftTranscript
from ..models.interview import EndReason
from ..models.protocol import InterviewIntake
from ..publisher import EventPublisher
from ..review.workflow import DraftReviewWorkflow
from ..storage.file_manager import FileManager
from ..transcription.base import BatchTranscriber
from ..transcription.buffer import TranscriptBuffer
from ..transcription.chatgpt_cleaning_engine import ChatGPTCleaningEngine
from ..transcription.cleaner import CleaningEngine, TranscriptCleaner
from ..transcription.google_backend import GoogleSpeechTranscriber
from ..transcription.remote import HttpCleaningEngine, HttpTranscriber

logger = logging.getLogger(__name__)

TOPICS = [
    events.TOPIC_INTERVIEW_STATUS,
    events.TOPIC_INTERVIEW_MESSAGE,
    events.TOPIC_INTERVIEW_ERROR,
    events.TOPIC_INTERVIEW_COUNTDOWN,
    events.TOPIC_CAPTURE_STATE,
    events.TOPIC_CAPTURE_ERROR,
    events.TOPIC_DRAFT_STATE,
]


def build_protocol(config: IntakeConfig) -> InterviewProtocol:
    if config.get('interview.mock', False):
        logger.info("Using the offline mock interview protocol")
        return MockInterviewProtocol()
    return InterviewProtocolClient(
        base_url=config.get('interview.base_url'),
        timeout_seconds=config.get('interview.timeout_seconds', 60),
    )


def build_cleaning_engine(config: IntakeConfig) -> Optional[CleaningEngine]:
    if not config.get('cleanup.enabled', True):
        return None
    engine = config.get('cleanup.engine', 'http')
    if engine == 'http':
        return HttpCleaningEngine(config.get('cleanup.endpoint'), config.get('cleanup.timeout_seconds', 10))
    if engine == 'chatgpt':
        return ChatGPTCleaningEngine(
            api_key=config.get_openai_api_key(),
            model=config.get('cleanup.model', 'gpt-4o-mini'),
            timeout_seconds=config.get('cleanup.timeout_seconds', 10),
        )
    raise ValueError(f"Unknown cleanup engine: {engine}")


def build_transcriber(config: IntakeConfig) -> BatchTranscriber:
    engine = config.get('transcription.engine', 'http')
    if engine == 'http':
        return HttpTranscriber(config.get('transcription.endpoint'), config.get('transcription.timeout_seconds', 30))
    if engine == 'google':
        return GoogleSpeechTranscriber(
            credentials_path=config.get_google_credentials_path(),
            timeout_seconds=config.get('transcription.timeout_seconds', 30),
        )
    raise ValueError(f"Unknown transcription engine: {engine}")


def build_capture_backend(config: IntakeConfig) -> CaptureBackend:
    """Select the capture variant once, from ``capture.backend``."""
    backend = config.get('capture.backend', 'continuous')
    if backend == 'continuous':
        recognizer = GoogleStreamingRecognizer(
            credentials_path=config.get_google_credentials_path(),
            input_device=config.get('capture.input_device'),
        )
        return ContinuousCaptureBackend(
            recognizer,
            max_restarts=config.get('capture.max_restarts', 3),
            stop_timeout_seconds=config.get('capture.stop_timeout_seconds', 2.0),
        )
    if backend == 'batch':
        recorder = MicrophoneRecorder(
            sample_rate=config.get('capture.sample_rate', 48000),
            chunk_size=config.get('capture.chunk_size', 1024),
            channels=config.get('capture.channels', 1),
            input_device=config.get('capture.input_device'),
        )
        return BatchCaptureBackend(recorder, build_transcriber(config), AudioEncoder())
    raise ValueError(f"Unknown capture backend: {backend}")


class IntakeService:
    """Wires capture, review and the interview controller for one patient session."""

    def __init__(
        self,
        config: IntakeConfig,
        protocol: Optional[InterviewProtocol] = None,
        capture_backend: Optional[CaptureBackend] = None,
        cleaning_engine: Optional[CleaningEngine] = None,
        voice: bool = False,
    ):
        """Initialize the service.

        Args:
            config: Loaded configuration
            protocol: Interview generator; built from config when omitted
            capture_backend: Capture variant; built from config when voice is on and this is omitted
            cleaning_engine: Remote cleanup engine; built from config when omitted
            voice: Enable hold-to-talk capture
        """
        self.config = config
        self.language = config.get('interview.language', 'en')
        self.publishers: Dict[str, EventPublisher] = {topic: EventPublisher(topic) for topic in TOPICS}

        self.file_manager = FileManager(config.get_data_directory())
        self.playback = SilentPlayback()
        self.draft = DraftTranscript()
        self.buffer = TranscriptBuffer(self.draft)
        self.review = DraftReviewWorkflow(self.draft, publisher=self.publishers[events.TOPIC_DRAFT_STATE])

        self.interview = InterviewTurnController(
            protocol or build_protocol(config),
            playback=self.playback,
            store=self.file_manager,
            language=self.language,
            idle_pause_seconds=config.get('interview.idle_pause_seconds', 600),
            countdown_seconds=config.get('interview.countdown_seconds', 60),
            countdown_tick_seconds=config.get('interview.countdown_tick_seconds', 1.0),
            summary_max_chars=config.get('interview.summary_max_chars', 1500),
            publishers=self.publishers,
        )
        self.review.submit_callback = self.interview.submit_answer
        self.interview.restore_draft = self.review.restore

        self.capture: Optional[VoiceCaptureController] = None
        if voice or capture_backend is not None:
            engine = cleaning_engine if cleaning_engine is not None else build_cleaning_engine(config)
            self.capture = VoiceCaptureController(
                backend=capture_backend or build_capture_backend(config),
                buffer=self.buffer,
                review=self.review,
                cleaner=TranscriptCleaner(engine),
                playback=self.playback,
                language=self.language,
                turn_gate=self.interview.can_capture,
                state_publisher=self.publishers[events.TOPIC_CAPTURE_STATE],
                error_publisher=self.publishers[events.TOPIC_CAPTURE_ERROR],
            )
            self.interview.capture = self.capture

        logger.info(f"IntakeService initialized (voice={'on' if self.capture else 'off'}, language={self.language})")

    async def start_interview(self, intake: Union[InterviewIntake, Dict[str, Any]]) -> bool:
        return await self.interview.start(intake)

    async def submit_typed_answer(self, text: str) -> bool:
        """Submit an answer typed by the patient, bypassing voice review."""
        self.review.redo()
        return await self.interview.submit_answer(text)

    async def end_interview(self) -> None:
        await self.interview.end_early(EndReason.PATIENT)

    async def shutdown(self) -> None:
        """Cancel capture and timers, release the capture backend and wait for background saves."""
        if self.capture is not None:
            self.capture.close()
        self.interview.timer.cancel()
        await self.interview.drain()
        logger.info("IntakeService shut down")
