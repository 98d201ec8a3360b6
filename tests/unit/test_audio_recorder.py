"""Unit tests for MicrophoneRecorder."""

import asyncio
import io
import wave

import pytest

from voiceintake.audio.recorder import MicrophoneRecorder, classify_device_error
from voiceintake.errors import CaptureError, CaptureErrorKind


@pytest.mark.unit
class TestMicrophoneRecorder:
    """Test cases for MicrophoneRecorder."""

    def test_initialization(self):
        recorder = MicrophoneRecorder()

        assert recorder.sample_rate == 48000
        assert recorder.chunk_size == 1024
        assert recorder.channels == 1
        assert recorder.is_recording is False

    def test_record_and_stop_returns_wav(self, mock_pyaudio):
        async def run():
            recorder = MicrophoneRecorder(sample_rate=16000, chunk_size=160)
            await recorder.start()
            assert recorder.is_recording
            assert recorder.recording_thread.daemon is True
            await asyncio.sleep(0.05)
            return recorder, await recorder.stop()

        recorder, clip = asyncio.run(run())

        assert recorder.is_recording is False
        assert recorder.total_chunks > 0
        with wave.open(io.BytesIO(clip), "rb") as wf:
            assert wf.getframerate() == 16000
            assert wf.getnchannels() == 1
            assert wf.getnframes() == recorder.total_chunks * 160
        mock_pyaudio['stream'].close.assert_called_once()
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_stop_without_recording(self):
        assert asyncio.run(MicrophoneRecorder().stop()) == b""

    def test_cancel_drops_audio(self, mock_pyaudio):
        async def run():
            recorder = MicrophoneRecorder(sample_rate=16000, chunk_size=160)
            await recorder.start()
            await asyncio.sleep(0.02)
            recorder.cancel()
            return recorder

        recorder = asyncio.run(run())

        assert recorder.is_recording is False
        assert recorder.get_duration_seconds() == 0.0

    def test_open_failure_is_classified(self, mock_pyaudio):
        mock_pyaudio['instance'].open.side_effect = OSError("Invalid input device", -9996)

        with pytest.raises(CaptureError) as excinfo:
            asyncio.run(MicrophoneRecorder().start())

        assert excinfo.value.kind == CaptureErrorKind.DEVICE_UNAVAILABLE
        mock_pyaudio['instance'].terminate.assert_called_once()


@pytest.mark.unit
class TestClassifyDeviceError:
    """PortAudio/OS error mapping."""

    @pytest.mark.parametrize("error,kind", [
        (PermissionError("not allowed"), CaptureErrorKind.PERMISSION_DENIED),
        (OSError("Access denied by the system"), CaptureErrorKind.PERMISSION_DENIED),
        (OSError("Invalid number of channels", -9998), CaptureErrorKind.DEVICE_UNAVAILABLE),
        (OSError("No default input device"), CaptureErrorKind.DEVICE_UNAVAILABLE),
        (OSError("Unanticipated host error", -9999), CaptureErrorKind.DEVICE_UNAVAILABLE),
        (OSError("something odd"), CaptureErrorKind.GENERIC),
    ])
    def test_mapping(self, error, kind):
        assert classify_device_error(error).kind == kind
