"""HTTP clients for the remote speech endpoints (cleanup and batch transcription)."""

import asyncio
import logging

import aiohttp

from ..errors import TranscriptionError
from ..language import normalize_language_code
from .base import BatchTranscriber

logger = logging.getLogger(__name__)


class HttpCleaningEngine:
    """Speaks the ``{text, language} -> {cleaned}`` cleanup contract."""

    def __init__(self, endpoint: str, timeout_seconds: float = 10):
        self.endpoint = endpoint
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        logger.info(f"HttpCleaningEngine initialized: {endpoint}")

    async def clean(self, text: str, language: str) -> str:
        payload = {"text": text, "language": normalize_language_code(language)}
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.endpoint, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise TranscriptionError(f"Cleanup endpoint error: {response.status} - {error_text}")
                result = await response.json()

        cleaned = result.get("cleaned") if isinstance(result, dict) else None
        if not isinstance(cleaned, str):
            raise TranscriptionError("Cleanup endpoint returned no cleaned text")
        return cleaned.strip()


class HttpTranscriber(BatchTranscriber):
    """Posts a PCM container as multipart ``audio`` plus ``language`` and reads ``{text}``."""

    def __init__(self, endpoint: str, timeout_seconds: float = 30):
        super().__init__()
        self.endpoint = endpoint
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.service_name = "HTTP speech-to-text"
        logger.info(f"HttpTranscriber initialized: {endpoint}")

    async def transcribe(self, pcm_container: bytes, language: str) -> str:
        form = aiohttp.FormData()
        form.add_field("audio", pcm_container, filename="speech.wav", content_type="audio/wav")
        form.add_field("language", normalize_language_code(language))

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.endpoint, data=form) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise TranscriptionError(f"Transcription error: {response.status} - {error_text}")
                    result = await response.json()
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise TranscriptionError(f"Transcription request failed: {e}", network=True) from e
        except aiohttp.ClientError as e:
            raise TranscriptionError(f"Transcription request failed: {e}") from e

        text = result.get("text", "") if isinstance(result, dict) else ""
        self.requests_completed += 1
        logger.info(f"Transcribed {len(pcm_container)} bytes -> {len(text or '')} chars")
        return (text or "").strip()
