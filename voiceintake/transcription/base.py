"""Abstract base class for batch transcription backends."""

from abc import ABC, abstractmethod
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)


class BatchTranscriber(ABC):
    """Transcribes one complete 16 kHz PCM container per call."""

    def __init__(self):
        self.service_name = type(self).__name__
        self.requests_completed = 0

    @abstractmethod
    async def transcribe(self, pcm_container: bytes, language: str) -> str:
        """Transcribe a clip.

        Args:
            pcm_container: Output of AudioEncoder.encode
            language: Interview language code

        Returns:
            Recognized text, possibly empty

        Raises:
            TranscriptionError: On remote failure; ``network`` is set for connectivity problems
        """
        pass

    def get_stats(self) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "requests_completed": self.requests_completed,
        }
