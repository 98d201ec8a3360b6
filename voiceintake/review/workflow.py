"""Review cycle for a captured answer: accept, edit or redo before it is submitted."""

import logging
from typing import Awaitable, Callable, Optional

from ..errors import IntakeError, InvalidTransitionError
from ..models.draft import DraftTranscript, ReviewState
from ..models.events import DraftStateEvent
from ..publisher import EventPublisher

logger = logging.getLogger(__name__)

SubmitCallback = Callable[[str], Awaitable[bool]]


class DraftReviewWorkflow:
    """Holds the candidate answer between capture and submission.

    Only one submission can be in flight; while it is, accept, edit and
    redo are rejected and new captures are suppressed.
    """

    def __init__(self, draft: DraftTranscript, submit_callback: Optional[SubmitCallback] = None,
                 publisher: Optional[EventPublisher] = None):
        """Initialize the workflow.

        Args:
            draft: The session's single live draft (shared with the transcript buffer)
            submit_callback: Coroutine that submits an answer and reports whether it was kept
            publisher: Optional publisher for draft_state events
        """
        self.draft = draft
        self.submit_callback = submit_callback
        self.publisher = publisher
        self.staged_text: Optional[str] = None
        self.is_submitting = False

    @property
    def state(self) -> ReviewState:
        return self.draft.review_state

    @property
    def text(self) -> str:
        return self.draft.committed_text

    def _require_idle(self, action: str) -> None:
        if self.is_submitting:
            raise InvalidTransitionError(f"Cannot {action} while an answer is being submitted")

    def _publish(self) -> None:
        if self.publisher is not None:
            self.publisher.publish(DraftStateEvent(
                review_state=self.draft.review_state.value,
                text=self.draft.committed_text,
                submitting=self.is_submitting,
            ))

    def set_candidate(self, text: str) -> None:
        """Place a finalized, cleaned capture under review."""
        self._require_idle("review a new capture")
        self.draft.committed_text = text
        self.draft.review_state = ReviewState.REVIEWING if text else ReviewState.CAPTURING
        logger.info(f"Draft ready for review ({len(text)} chars)")
        self._publish()

    async def accept(self, auto_submit: bool = False) -> str:
        """Accept the draft under review.

        Args:
            auto_submit: Submit immediately instead of staging the text

        Returns:
            The accepted answer text
        """
        self._require_idle("accept")
        if self.state == ReviewState.CAPTURING or not self.draft.committed_text.strip():
            raise InvalidTransitionError("There is no draft to accept")

        text = self.draft.committed_text.strip()
        if auto_submit:
            await self._submit(text)
        else:
            self.staged_text = text
            self.draft.clear()
            logger.info("Draft accepted and staged for submission")
            self._publish()
        return text

    async def submit_staged(self) -> str:
        self._require_idle("submit")
        if not self.staged_text:
            raise InvalidTransitionError("There is no staged answer to submit")
        text = self.staged_text
        await self._submit(text)
        return text

    async def _submit(self, text: str) -> bool:
        if self.submit_callback is None:
            raise InvalidTransitionError("No interview is accepting answers")

        # Cleared before submitting so a failed submission can restore the draft.
        self.staged_text = None
        self.draft.clear()
        self.is_submitting = True
        self._publish()
        try:
            kept = await self.submit_callback(text)
        except IntakeError:
            self.restore(text)
            raise
        finally:
            self.is_submitting = False
            self._publish()
        logger.info(f"Answer submission {'kept' if kept else 'rolled back'}")
        return kept

    def edit(self) -> None:
        """Freeze the draft for free-text modification."""
        self._require_idle("edit")
        if self.state == ReviewState.EDITING:
            return
        if self.state != ReviewState.REVIEWING:
            raise InvalidTransitionError("There is no draft to edit")
        self.draft.review_state = ReviewState.EDITING
        self._publish()

    def update_text(self, text: str) -> None:
        if self.state != ReviewState.EDITING:
            raise InvalidTransitionError("The draft is not being edited")
        self.draft.committed_text = text

    def finish_edit(self, text: Optional[str] = None) -> None:
        """Leave edit mode, optionally replacing the text; without a value the current text is kept."""
        if self.state != ReviewState.EDITING:
            raise InvalidTransitionError("The draft is not being edited")
        if text is not None:
            self.draft.committed_text = text.strip()
        self.draft.raw_buffer = self.draft.committed_text
        self.draft.review_state = ReviewState.REVIEWING if self.draft.committed_text else ReviewState.CAPTURING
        self._publish()

    def redo(self) -> None:
        """Discard the whole draft and go back to capturing."""
        self._require_idle("redo")
        self.draft.clear()
        logger.info("Draft discarded for recapture")
        self._publish()

    def restore(self, text: str) -> None:
        """Put a previously submitted answer back under review."""
        self.draft.raw_buffer = text
        self.draft.interim = ""
        self.draft.committed_text = text
        self.draft.review_state = ReviewState.REVIEWING if text else ReviewState.CAPTURING
        logger.info("Draft restored after a failed submission")
        self._publish()
