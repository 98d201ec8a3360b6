"""Convert captured clips into the 16 kHz mono 16-bit PCM container used for transcription."""

import io
import json
import logging
import math
import shutil
import struct
import subprocess
from typing import Tuple

import numpy as np
from scipy.io import wavfile

from ..errors import AudioDecodeError

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1
BITS_PER_SAMPLE = 16
HEADER_SIZE = 44

_HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"


def decode_audio(raw_audio: bytes) -> Tuple[np.ndarray, int]:
    """Decode a clip into float32 samples shaped (frames, channels).

    WAV input is read directly; other containers go through ffmpeg when it is
    installed.

    Raises:
        AudioDecodeError: if the clip cannot be decoded
    """
    if not raw_audio:
        raise AudioDecodeError("empty audio clip")

    try:
        sample_rate, data = wavfile.read(io.BytesIO(raw_audio))
    except ValueError as e:
        logger.debug(f"Not a WAV clip ({e}); trying ffmpeg")
        sample_rate, data = _decode_with_ffmpeg(raw_audio)

    samples = _to_float(data)
    if samples.ndim == 1:
        samples = samples[:, np.newaxis]
    return samples, int(sample_rate)


def _run_tool(cmd: list, raw_audio: bytes) -> bytes:
    try:
        completed = subprocess.run(cmd, input=raw_audio, check=True,
                                   stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode("utf-8", "ignore") if e.stderr else ""
        raise AudioDecodeError(f"{cmd[0]} failed: {stderr.strip() or 'unknown error'}") from e
    return completed.stdout


def _decode_with_ffmpeg(raw_audio: bytes) -> Tuple[int, np.ndarray]:
    ffmpeg = shutil.which("ffmpeg")
    ffprobe = shutil.which("ffprobe")
    if not ffmpeg or not ffprobe:
        raise AudioDecodeError("clip is not WAV and ffmpeg is not installed")

    # Keep the source rate and channel layout; mixdown and resampling happen here.
    stream_info = _run_tool([ffprobe, "-v", "error", "-select_streams", "a:0",
                             "-show_entries", "stream=sample_rate,channels", "-of", "json", "pipe:0"], raw_audio)
    try:
        stream = json.loads(stream_info)["streams"][0]
        sample_rate = int(stream["sample_rate"])
        channels = int(stream["channels"])
    except (ValueError, KeyError, IndexError) as e:
        raise AudioDecodeError(f"ffprobe found no audio stream: {e}") from e

    pcm = _run_tool([ffmpeg, "-hide_banner", "-loglevel", "error", "-i", "pipe:0",
                     "-f", "f32le", "-acodec", "pcm_f32le", "pipe:1"], raw_audio)
    data = np.frombuffer(pcm, dtype="<f4")
    frames = data.size // channels
    if frames == 0:
        raise AudioDecodeError("ffmpeg decoded no samples")
    return sample_rate, data[:frames * channels].reshape(frames, channels)


def _to_float(data: np.ndarray) -> np.ndarray:
    if data.dtype == np.int16:
        return data.astype(np.float32) / 32768.0
    if data.dtype == np.int32:
        return data.astype(np.float32) / 2147483648.0
    if data.dtype == np.uint8:
        return (data.astype(np.float32) - 128.0) / 128.0
    if np.issubdtype(data.dtype, np.floating):
        return data.astype(np.float32)
    raise AudioDecodeError(f"unsupported sample format: {data.dtype}")


def mix_to_mono(samples: np.ndarray) -> np.ndarray:
    """Average all channels of a (frames, channels) array into one."""
    if samples.ndim == 1:
        return samples.astype(np.float32)
    if samples.shape[1] == 1:
        return samples[:, 0].astype(np.float32)
    return samples.mean(axis=1).astype(np.float32)


def resampled_length(input_length: int, source_rate: int, target_rate: int = TARGET_SAMPLE_RATE) -> int:
    """round(input_length * target/source), with halves rounded up."""
    return int(math.floor(input_length * target_rate / source_rate + 0.5))


def resample_nearest(samples: np.ndarray, source_rate: int, target_rate: int = TARGET_SAMPLE_RATE) -> np.ndarray:
    """Nearest-index resample.

    Output sample i takes input sample round(i / ratio) where
    ratio = target/source. No interpolation or filtering: the transcription
    service expects exactly this policy. When upsampling, trailing indices
    that round past the end of the input produce silence.
    """
    if source_rate <= 0:
        raise AudioDecodeError(f"invalid source sample rate: {source_rate}")
    if source_rate == target_rate or samples.size == 0:
        return samples

    ratio = target_rate / source_rate
    out_length = resampled_length(samples.size, source_rate, target_rate)
    indices = np.floor(np.arange(out_length) / ratio + 0.5).astype(np.int64)
    out = np.zeros(out_length, dtype=samples.dtype)
    valid = indices < samples.size
    out[valid] = samples[indices[valid]]
    return out


def quantize_pcm16(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and scale to int16 (+32767 / -32768), truncating toward zero."""
    clipped = np.clip(samples.astype(np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return np.trunc(scaled).astype("<i2")


def build_pcm_container(pcm: np.ndarray) -> bytes:
    """Wrap little-endian int16 mono samples in the 44-byte RIFF/WAVE header."""
    data = np.asarray(pcm, dtype="<i2").tobytes()
    byte_rate = TARGET_SAMPLE_RATE * TARGET_CHANNELS * BITS_PER_SAMPLE // 8
    block_align = TARGET_CHANNELS * BITS_PER_SAMPLE // 8
    header = struct.pack(
        _HEADER_FORMAT,
        b"RIFF", 36 + len(data), b"WAVE",
        b"fmt ", 16, 1, TARGET_CHANNELS, TARGET_SAMPLE_RATE, byte_rate, block_align, BITS_PER_SAMPLE,
        b"data", len(data),
    )
    return header + data


def decode_pcm_container(container: bytes) -> Tuple[np.ndarray, int]:
    """Read back a container produced by build_pcm_container.

    Returns:
        Tuple of (float samples, sample rate); positive samples are scaled by
        1/32767 and negative ones by 1/32768, mirroring the encoder.
    """
    if len(container) < HEADER_SIZE:
        raise AudioDecodeError("container shorter than its header")

    (riff, riff_size, wave_tag, fmt_tag, fmt_size, audio_format, channels, sample_rate,
     byte_rate, block_align, bits, data_tag, data_size) = struct.unpack(_HEADER_FORMAT, container[:HEADER_SIZE])

    if riff != b"RIFF" or wave_tag != b"WAVE" or fmt_tag != b"fmt " or data_tag != b"data":
        raise AudioDecodeError("not a PCM container")
    if audio_format != 1 or channels != 1 or bits != 16 or fmt_size != 16:
        raise AudioDecodeError("unexpected PCM container format")
    if riff_size != len(container) - 8 or data_size != len(container) - HEADER_SIZE:
        raise AudioDecodeError("PCM container sizes do not match its length")

    pcm = np.frombuffer(container[HEADER_SIZE:], dtype="<i2").astype(np.float64)
    samples = np.where(pcm < 0, pcm / 32768.0, pcm / 32767.0)
    return samples, sample_rate


class AudioEncoder:
    """Turns an arbitrary microphone clip into the canonical transcription container."""

    def __init__(self, target_sample_rate: int = TARGET_SAMPLE_RATE):
        if target_sample_rate != TARGET_SAMPLE_RATE:
            raise ValueError("the PCM container is fixed at 16 kHz")
        self.target_sample_rate = target_sample_rate

    def encode(self, raw_audio: bytes) -> bytes:
        """Decode, mix down, resample and quantize a clip.

        Raises:
            AudioDecodeError: if the clip cannot be decoded; nothing partial is returned
        """
        samples, source_rate = decode_audio(raw_audio)
        mono = mix_to_mono(samples)
        resampled = resample_nearest(mono, source_rate, self.target_sample_rate)
        container = build_pcm_container(quantize_pcm16(resampled))

        logger.info(f"Encoded clip: {samples.shape[0]} frames @ {source_rate}Hz x{samples.shape[1]} "
                    f"-> {resampled.size} samples @ {self.target_sample_rate}Hz ({len(container)} bytes)")
        return container

    def encode_samples(self, samples: np.ndarray, source_rate: int) -> bytes:
        """Encode already-decoded float samples shaped (frames,) or (frames, channels)."""
        mono = mix_to_mono(np.asarray(samples, dtype=np.float32))
        return build_pcm_container(quantize_pcm16(resample_nearest(mono, source_rate, self.target_sample_rate)))
