"""Accumulates finalized and in-progress speech fragments into one candidate answer."""

import logging
import re
from typing import Optional, Union

from ..models.draft import DraftTranscript, ReviewState, NO_SPEECH

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


class TranscriptBuffer:
    """Speech fragment buffer backed by the session's single DraftTranscript.

    Final fragments only ever grow ``raw_buffer``; the interim fragment is
    replaced on every update and dropped once a final fragment arrives.
    """

    def __init__(self, draft: Optional[DraftTranscript] = None):
        self.draft = draft if draft is not None else DraftTranscript()
        self.fragments_appended = 0

    @property
    def raw_buffer(self) -> str:
        return self.draft.raw_buffer

    @property
    def interim(self) -> str:
        return self.draft.interim

    def start(self, seed: str = "") -> None:
        """Prepare for a new capture.

        Args:
            seed: Pending draft text that new speech should extend; empty clears the buffer
        """
        self.draft.interim = ""
        self.draft.raw_buffer = collapse_whitespace(seed)
        self.draft.review_state = ReviewState.CAPTURING
        logger.debug(f"Buffer started with {len(self.draft.raw_buffer)} seeded chars")

    def append_final(self, text: str) -> None:
        fragment = collapse_whitespace(text or "")
        # A final result supersedes whatever interim text preceded it.
        self.draft.interim = ""
        if not fragment:
            return
        if self.draft.raw_buffer:
            self.draft.raw_buffer = f"{self.draft.raw_buffer} {fragment}"
        else:
            self.draft.raw_buffer = fragment
        self.fragments_appended += 1
        logger.debug(f"Final fragment appended: '{fragment}'")

    def set_interim(self, text: str) -> None:
        self.draft.interim = text or ""

    def finalize(self) -> Union[str, type(NO_SPEECH)]:
        """Merge the buffer and any pending interim into one candidate.

        Returns:
            The collapsed candidate text, or NO_SPEECH when nothing was heard
        """
        combined = collapse_whitespace(f"{self.draft.raw_buffer} {self.draft.interim}")
        self.draft.raw_buffer = combined
        self.draft.interim = ""
        if not combined:
            logger.info("Finalize produced no speech")
            return NO_SPEECH
        logger.info(f"Finalized candidate of {len(combined)} chars")
        return combined

    def clear(self) -> None:
        self.draft.clear()
        self.fragments_appended = 0
