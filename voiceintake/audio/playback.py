"""Speech playback handle consulted by capture guards and cancelled on pause."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class SpeechPlayback(Protocol):
    """Anything that can read questions aloud."""

    @property
    def is_speaking(self) -> bool:
        ...

    def stop(self) -> None:
        ...


class SilentPlayback:
    """Playback for text-only sessions; tracks a speaking flag so callers can simulate TTS."""

    def __init__(self):
        self._speaking = False

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    def begin(self) -> None:
        self._speaking = True

    def stop(self) -> None:
        if self._speaking:
            logger.info("Speech playback cancelled")
        self._speaking = False
