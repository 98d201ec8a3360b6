"""Two-stage transcript cleanup: local heuristics, then an optional remote rewrite."""

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from ..errors import TranscriptionError
from .heuristics import apply_local_heuristics, normalize_punctuation

logger = logging.getLogger(__name__)


class CleaningEngine(Protocol):
    """Protocol for engines that can rewrite a transcript for grammar and punctuation."""

    async def clean(self, text: str, language: str) -> str:
        """Return the rewritten text; may raise or return an empty string."""
        ...


class TranscriptCleaner:
    """Cleans a finalized candidate using any compatible cleaning engine."""

    def __init__(self, engine: Optional[CleaningEngine] = None):
        """Initialize transcript cleaner.

        Args:
            engine: Remote cleaning engine, or None to use local heuristics only
        """
        self.engine = engine
        self.remote_failures = 0
        logger.info(f"TranscriptCleaner initialized (remote engine: {type(engine).__name__ if engine else 'none'})")

    async def clean(self, text: str, language: str = "en") -> str:
        """Clean a candidate answer.

        The remote pass never blocks submission: on failure or an empty reply
        the locally cleaned text is used verbatim. Only a remote rewrite goes
        through the punctuation normalizer.

        Args:
            text: Finalized candidate from the transcript buffer
            language: Normalized interview language code

        Returns:
            Cleaned answer text
        """
        local = apply_local_heuristics(text)
        if not local or self.engine is None:
            return local

        try:
            remote = await self.engine.clean(local, language)
        except (TranscriptionError, aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError) as e:
            self.remote_failures += 1
            logger.warning(f"Remote cleanup failed, using local text: {e}")
            return local

        if not remote or not remote.strip():
            logger.info("Remote cleanup returned nothing, using local text")
            return local

        result = normalize_punctuation(remote)
        logger.debug(f"Cleaned '{text}' -> '{result}'")
        return result
