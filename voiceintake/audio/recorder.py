"""Microphone recording for the record-then-transcribe capture backend."""

import asyncio
import io
import logging
import wave
from abc import ABC, abstractmethod
from datetime import datetime
from threading import Thread, Event
from typing import Optional

from ..errors import CaptureError, CaptureErrorKind

logger = logging.getLogger(__name__)

# PortAudio error codes that mean "there is no usable input device".
_DEVICE_ERROR_CODES = {-9996, -9998, -9999, -9985}


class AudioRecorder(ABC):
    """Records raw audio to memory between start() and stop()."""

    @abstractmethod
    async def start(self) -> None:
        """Open the input device and begin recording.

        Raises:
            CaptureError: permission or device problems
        """

    @abstractmethod
    async def stop(self) -> bytes:
        """Stop recording and return the clip as WAV bytes."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop recording and drop whatever was captured."""


def classify_device_error(error: Exception) -> CaptureError:
    """Map a PortAudio/OS failure onto a capture error kind."""
    if isinstance(error, PermissionError):
        return CaptureError(CaptureErrorKind.PERMISSION_DENIED, str(error))
    code = error.args[1] if len(error.args) > 1 and isinstance(error.args[1], int) else None
    text = str(error).lower()
    if "permission" in text or "denied" in text:
        return CaptureError(CaptureErrorKind.PERMISSION_DENIED, str(error))
    if code in _DEVICE_ERROR_CODES or "device" in text:
        return CaptureError(CaptureErrorKind.DEVICE_UNAVAILABLE, str(error))
    return CaptureError(CaptureErrorKind.GENERIC, str(error))


class MicrophoneRecorder(AudioRecorder):
    """PyAudio recorder that collects 16-bit frames in a background thread."""

    def __init__(
        self,
        sample_rate: int = 48000,
        chunk_size: int = 1024,
        channels: int = 1,
        input_device: Optional[int] = None,
    ):
        """Initialize the recorder.

        Args:
            sample_rate: Capture sample rate; the encoder resamples to 16 kHz later
            chunk_size: Frames per read
            channels: Number of input channels
            input_device: PyAudio device index, or None for the default input
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.input_device = input_device

        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.frames = bytearray()

        self.pyaudio_instance = None
        self.stream = None

    def _open_stream(self):
        try:
            import pyaudio
        except ImportError as e:
            raise CaptureError(CaptureErrorKind.DEVICE_UNAVAILABLE,
                               f"PyAudio is not installed: {e}") from e

        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            stream = self.pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.input_device,
                frames_per_buffer=self.chunk_size,
            )
        except OSError as e:
            self._terminate()
            raise classify_device_error(e) from e

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, {self.channels}ch, "
                    f"{self.chunk_size} samples/chunk")
        return stream

    async def start(self) -> None:
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info("Starting audio recording")
        # Opening the device can block for a while on some hosts.
        self.stream = await asyncio.to_thread(self._open_stream)
        self.stop_event.clear()
        self.frames = bytearray()
        self.total_chunks = 0
        self.start_time = datetime.now()

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "MicrophoneRecorderThread"
        self.recording_thread.start()
        self.is_recording = True

    def _record_continuously(self) -> None:
        """Internal method: recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
                self.frames.extend(chunk)
                self.total_chunks += 1
        except OSError as e:
            logger.error(f"Microphone read failed: {e}")
        finally:
            self._close_stream()

    def _close_stream(self) -> None:
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        self._terminate()

    def _terminate(self) -> None:
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def _join(self) -> None:
        self.stop_event.set()
        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
        self.is_recording = False

    async def stop(self) -> bytes:
        if not self.is_recording:
            logger.warning("No recording in progress")
            return b""

        logger.info("Stopping audio recording")
        await asyncio.to_thread(self._join)
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")
        return self.to_wav_bytes()

    def cancel(self) -> None:
        if self.is_recording:
            self._join()
        self.frames = bytearray()

    def to_wav_bytes(self) -> bytes:
        """Wrap the captured frames in a WAV container at the capture rate."""
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(2)
            wf.setframerate(self.sample_rate)
            wf.writeframes(bytes(self.frames))
        return buffer.getvalue()

    def get_duration_seconds(self) -> float:
        bytes_per_second = self.sample_rate * self.channels * 2
        return len(self.frames) / bytes_per_second if bytes_per_second else 0.0
