"""Pytest configuration and fixtures for voiceintake tests."""

import asyncio
import io
import sys
import tempfile
import time
import logging
from typing import List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest
from pubsub import pub
from scipy.io import wavfile

from voiceintake.audio.recorder import AudioRecorder
from voiceintake.capture.continuous import StreamingRecognizer
from voiceintake.errors import TranscriptionError
from voiceintake.models.protocol import QuestionTurn, SummaryTurn
from voiceintake.transcription.base import BatchTranscriber


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single component")
    config.addinivalue_line("markers", "integration: tests spanning the assembled service")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def valid_intake():
    """A complete intake form using the protocol's camelCase names."""
    return {
        "chiefComplaint": "sore throat and fever",
        "patientProfile": {
            "sex": "female",
            "age": 34,
            "pmh": "mild asthma",
            "familyHistory": "father with hypertension",
            "familyDoctor": "Dr. Patel",
            "currentMedications": "salbutamol as needed",
            "allergies": "penicillin",
        },
        "patientEmail": "patient@example.com",
        "physicianId": "physician-1",
    }


@pytest.fixture
def audio_test_data():
    """Generate WAV clips for encoder tests."""
    def generate_wav(pattern="sine", duration_seconds=0.5, sample_rate=48000, channels=1, dtype=np.int16):
        """Generate a WAV clip.

        Args:
            pattern: 'sine', 'silence' or 'split' (left sine, right silence)
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz
            channels: 1 or 2
            dtype: numpy sample type written to the file

        Returns:
            bytes: The WAV file contents
        """
        samples = int(duration_seconds * sample_rate)
        t = np.arange(samples) / sample_rate
        if pattern == "sine":
            mono = 0.5 * np.sin(2 * np.pi * 440 * t)
        elif pattern in ("silence", "split"):
            mono = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        if channels == 2:
            left = 0.5 * np.sin(2 * np.pi * 440 * t) if pattern == "split" else mono
            data = np.stack([left, mono], axis=1)
        else:
            data = mono

        if dtype == np.int16:
            data = (data * 32767).astype(np.int16)
        else:
            data = data.astype(dtype)

        buffer = io.BytesIO()
        wavfile.write(buffer, sample_rate, data)
        return buffer.getvalue()

    return generate_wav


@pytest.fixture
def mock_pyaudio():
    """Stand-in pyaudio module so recording can run without audio hardware."""
    module = Mock()
    module.paInt16 = 8
    instance = Mock()
    stream = Mock()

    def read(frames, exception_on_overflow=False):
        time.sleep(0.001)
        return b'\x00\x01' * frames

    stream.read.side_effect = read
    instance.open.return_value = stream
    module.PyAudio.return_value = instance

    with patch.dict(sys.modules, {"pyaudio": module}):
        yield {
            'module': module,
            'instance': instance,
            'stream': stream
        }


class FakeRecognizer(StreamingRecognizer):
    """Streaming recognizer driven by the test.

    ``start_errors`` are raised by successive start() calls (None means start succeeds).
    """

    def __init__(self, start_errors: Optional[list] = None, end_on_stop: bool = True):
        self.start_errors = list(start_errors or [])
        self.end_on_stop = end_on_stop
        self.listener = None
        self.locales: List[str] = []
        self.start_calls = 0
        self.stop_calls = 0
        self.abort_calls = 0
        self.close_calls = 0

    def start(self, listener, locale):
        self.start_calls += 1
        self.locales.append(locale)
        if self.start_errors:
            error = self.start_errors.pop(0)
            if error is not None:
                raise error
        self.listener = listener

    def stop(self):
        self.stop_calls += 1
        if self.end_on_stop and self.listener is not None:
            self.listener.on_end()

    def abort(self):
        self.abort_calls += 1

    def close(self):
        self.close_calls += 1

    def interim(self, text):
        self.listener.on_result(text, False)

    def final(self, text):
        self.listener.on_result(text, True)

    def end(self):
        self.listener.on_end()

    def error(self, error):
        self.listener.on_error(error)


class FakeRecorder(AudioRecorder):
    """In-memory recorder returning a fixed clip."""

    def __init__(self, clip: bytes = b"", start_error: Optional[Exception] = None):
        self.clip = clip
        self.start_error = start_error
        self.started = False
        self.cancelled = False

    async def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    async def stop(self):
        self.started = False
        return self.clip

    def cancel(self):
        self.started = False
        self.cancelled = True


class FakeTranscriber(BatchTranscriber):
    """Returns a fixed transcript or raises the configured error."""

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        super().__init__()
        self.text = text
        self.error = error
        self.received: List[bytes] = []

    async def transcribe(self, pcm_container, language):
        self.received.append(pcm_container)
        if self.error is not None:
            raise self.error
        self.requests_completed += 1
        return self.text


class FakeCleaningEngine:
    """Remote cleanup stand-in that echoes a fixed reply or raises."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[str] = []

    async def clean(self, text, language):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeProtocol:
    """Interview generator that replays scripted turns.

    Each script entry is a QuestionTurn, SummaryTurn, or an exception to raise.
    Set ``gate`` to an asyncio.Event to hold responses until it is set.
    """

    def __init__(self, script: Optional[list] = None):
        self.script = list(script or [])
        self.calls: List[dict] = []
        self.gate: Optional[asyncio.Event] = None

    async def next_turn(self, intake, transcript, language, force_summary=False):
        self.calls.append({
            "transcript": list(transcript),
            "language": language,
            "force_summary": force_summary,
        })
        if self.gate is not None:
            await self.gate.wait()
        if not self.script:
            raise AssertionError("FakeProtocol script exhausted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def question(text: str = "How long have you had these symptoms?") -> QuestionTurn:
    return QuestionTurn(type="question", question=text, rationale="test")


def summary(text: str = "Patient reports a sore throat and fever for two days.") -> SummaryTurn:
    return SummaryTurn(
        positives=["sore throat", "fever"],
        negatives=["no cough"],
        summary=text,
        investigations=["throat swab"],
        assessment="Likely viral pharyngitis.",
        plan=["Supportive care"],
    )


class EventRecorder:
    """Collects events published on a pub/sub topic."""

    def __init__(self, topic: str):
        self.topic = topic
        self.events = []
        pub.subscribe(self.on_event, topic)

    def on_event(self, event):
        self.events.append(event)

    def close(self):
        pub.unsubscribe(self.on_event, self.topic)


@pytest.fixture
def event_recorder():
    """Factory for EventRecorders that are unsubscribed after the test."""
    recorders = []

    def make(topic):
        recorder = EventRecorder(topic)
        recorders.append(recorder)
        return recorder

    yield make
    for recorder in recorders:
        recorder.close()


async def wait_for(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll until ``predicate()`` is true on the running loop."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not reached before timeout")
        await asyncio.sleep(interval)
