"""Top-level interview state machine."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from ..errors import IntakeValidationError, InvalidTransitionError, ProtocolError, RateLimitError
from ..language import normalize_language_code
from ..models.events import (
    TOPIC_INTERVIEW_COUNTDOWN,
    TOPIC_INTERVIEW_ERROR,
    TOPIC_INTERVIEW_MESSAGE,
    TOPIC_INTERVIEW_STATUS,
    CountdownEvent,
    ErrorEvent,
    MessageEvent,
    StatusEvent,
)
from ..models.interview import EndReason, InterviewSession, InterviewStatus
from ..models.protocol import (
    MAX_MESSAGE_CHARS,
    MAX_TRANSCRIPT_MESSAGES,
    ChatMessage,
    InterviewIntake,
    QuestionTurn,
    SummaryTurn,
)
from ..publisher import EventPublisher
from .messages import CLOSING_MESSAGE, FINAL_COMMENTS_PROMPT, format_summary
from .protocol import InterviewProtocol
from .summary import synthesize_summary
from .timers import PauseTimer

logger = logging.getLogger(__name__)

# Request kinds
START = "start"
ANSWER = "answer"
RETRY = "retry"
FORCED_SUMMARY = "forced_summary"


@dataclass
class _Outcome:
    """Result of one protocol request, applied immediately or deferred while paused."""
    token: int
    kind: str
    turn: Optional[Union[QuestionTurn, SummaryTurn]] = None
    error: Optional[ProtocolError] = None
    answer: Optional[str] = None
    answer_index: Optional[int] = None


class InterviewTurnController:
    """Owns the InterviewSession and drives it through its states.

    Every protocol request carries a token; only the newest token's result
    is applied, and a result that lands while the interview is paused is
    held until resume.
    """

    def __init__(
        self,
        protocol: InterviewProtocol,
        capture=None,
        playback=None,
        store=None,
        language: str = "en",
        idle_pause_seconds: float = 600,
        countdown_seconds: int = 60,
        summary_max_chars: int = 1500,
        countdown_tick_seconds: float = 1.0,
        publishers: Optional[Dict[str, EventPublisher]] = None,
    ):
        """Initialize the controller.

        Args:
            protocol: Interview generator (remote client or mock)
            capture: VoiceCaptureController to cancel on pause, if voice is enabled
            playback: Speech playback to stop on pause
            store: Persistence collaborator with ``save_interview(session)``
            language: Interview language code
            idle_pause_seconds: Paused time before the end-of-interview countdown
            countdown_seconds: Countdown length before a paused interview is ended
            summary_max_chars: Length bound of a locally synthesized summary
            countdown_tick_seconds: Duration of one countdown tick
            publishers: EventPublishers keyed by topic
        """
        self.protocol = protocol
        self.capture = capture
        self.playback = playback
        self.store = store
        self.language = normalize_language_code(language)
        self.summary_max_chars = summary_max_chars
        self.publishers = publishers or {}

        self.restore_draft: Optional[Callable[[str], None]] = None

        self.session = InterviewSession(language=self.language)
        self.timer = PauseTimer(
            idle_seconds=idle_pause_seconds,
            countdown_seconds=countdown_seconds,
            on_tick=self._on_countdown_tick,
            on_expire=self._on_pause_expired,
            tick_seconds=countdown_tick_seconds,
        )

        self._token = 0
        self._in_flight: Optional[int] = None
        self._deferred: Optional[_Outcome] = None
        self._paused_from: Optional[InterviewStatus] = None
        self._end_reason: Optional[EndReason] = None
        self._final_comment_index: Optional[int] = None
        self._background: List[asyncio.Future] = []

    @property
    def status(self) -> InterviewStatus:
        return self.session.status

    @property
    def request_in_flight(self) -> bool:
        return self._in_flight is not None

    def can_capture(self) -> bool:
        return self.session.status == InterviewStatus.AWAITING_PATIENT

    async def start(self, intake: Union[InterviewIntake, Dict[str, Any]]) -> bool:
        """Validate the intake and request the first question.

        Returns:
            True if the first question arrived (or is deferred), False if the request failed

        Raises:
            IntakeValidationError: If the intake is invalid
            InvalidTransitionError: If an interview is already running
        """
        if self.session.status != InterviewStatus.IDLE:
            raise InvalidTransitionError(f"Cannot start an interview from {self.session.status.value}")

        if not isinstance(intake, InterviewIntake):
            try:
                intake = InterviewIntake.model_validate(intake)
            except ValidationError as e:
                fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
                raise IntakeValidationError(f"Invalid intake: {', '.join(fields)}", fields) from e

        self.session.intake = intake
        self.session.transcript = []
        self.session.started_at = datetime.now()
        self.session.error = None
        logger.info(f"Starting interview {self.session.session_id} ({self.language})")

        self._set_status(InterviewStatus.AWAITING_AI)
        return await self._request_turn(START)

    async def submit_answer(self, text: str) -> bool:
        """Submit a patient answer.

        Returns:
            True if the answer was kept, False if it was rolled back after a protocol failure

        Raises:
            IntakeValidationError: Empty or over-long answer, or the conversation is at its message limit
            InvalidTransitionError: The interview is not waiting for an answer
        """
        answer = (text or "").strip()
        if not answer:
            raise IntakeValidationError("Answer cannot be empty", ["content"])
        if len(answer) > MAX_MESSAGE_CHARS:
            raise IntakeValidationError(f"Answer exceeds {MAX_MESSAGE_CHARS} characters", ["content"])
        if self.session.status != InterviewStatus.AWAITING_PATIENT:
            raise InvalidTransitionError(f"Cannot submit an answer while {self.session.status.value}")

        self.session.error = None

        if self.session.awaiting_final_comments:
            self._final_comment_index = self._append("patient", answer)
            self.session.summary.patient_final_comments = answer
            logger.info("Final comments received")
            await self._complete()
            return True

        # Room for the answer and the reply, so a forced summary stays within the cap.
        if len(self.session.transcript) + 2 > MAX_TRANSCRIPT_MESSAGES:
            raise IntakeValidationError(
                f"The interview has reached its {MAX_TRANSCRIPT_MESSAGES}-message limit; end it to get a summary",
                ["transcript"])

        index = self._append("patient", answer)
        self._set_status(InterviewStatus.AWAITING_AI)
        return await self._request_turn(ANSWER, answer=answer, answer_index=index)

    def pause(self) -> None:
        """Suspend the interview, stopping capture and speech and arming the pause timers."""
        status = self.session.status
        if status == InterviewStatus.PAUSED:
            return
        if status not in (InterviewStatus.AWAITING_PATIENT, InterviewStatus.AWAITING_AI):
            raise InvalidTransitionError(f"Cannot pause while {status.value}")

        if self.capture is not None:
            self.capture.cancel()
        if self.playback is not None:
            self.playback.stop()

        self._paused_from = status
        self._set_status(InterviewStatus.PAUSED)
        self.timer.start()
        self.session.pause_deadline = datetime.now() + timedelta(seconds=self.timer.total_seconds)
        logger.info(f"Interview paused from {status.value}; deadline {self.session.pause_deadline:%H:%M:%S}")

    async def resume(self) -> None:
        """Leave Paused, applying a deferred result or retrying an unprocessed answer."""
        if self.session.status != InterviewStatus.PAUSED:
            raise InvalidTransitionError(f"Cannot resume while {self.session.status.value}")

        previous = self._paused_from or InterviewStatus.AWAITING_PATIENT
        self._paused_from = None
        self._set_status(previous)
        logger.info(f"Interview resumed into {previous.value}")

        if self._deferred is not None:
            outcome, self._deferred = self._deferred, None
            logger.info(f"Applying {outcome.kind} result received while paused")
            self._apply(outcome)
            return

        last = self.session.last_message
        if (previous == InterviewStatus.AWAITING_AI and self._in_flight is None
                and last is not None and last.role == "patient"):
            logger.info("Answer was never processed; retrying the request")
            await self._request_turn(RETRY, answer=last.content, answer_index=len(self.session.transcript) - 1)

    async def end_early(self, reason: EndReason = EndReason.PATIENT) -> None:
        """End the interview before the generator offers a summary.

        A forced-summary request is tried first; on failure a local summary is
        synthesized. Either way the interview ends with a summary.
        """
        status = self.session.status
        if reason == EndReason.TIMEOUT and status != InterviewStatus.PAUSED:
            logger.info("Interview resumed before the pause timeout ended it")
            return
        if status in (InterviewStatus.IDLE, InterviewStatus.COMPLETE):
            raise InvalidTransitionError(f"Cannot end the interview while {status.value}")

        logger.info(f"Ending interview early ({reason.value}) from {status.value}")
        if self.capture is not None:
            self.capture.cancel()
        if self.playback is not None:
            self.playback.stop()
        self._deferred = None
        self._paused_from = None
        self._end_reason = reason

        if self.session.summary is not None:
            # Summary already presented; only the final comments were outstanding.
            await self._complete()
            return

        self._set_status(InterviewStatus.AWAITING_AI)
        await self._request_turn(FORCED_SUMMARY)

    def edit_message(self, index: int, content: str) -> None:
        """Replace a prior patient message (provider correction)."""
        transcript = self.session.transcript
        if not 0 <= index < len(transcript):
            raise IndexError(f"No transcript message at index {index}")
        if transcript[index].role != "patient":
            raise InvalidTransitionError("Only patient messages can be edited")
        text = (content or "").strip()
        if not text or len(text) > MAX_MESSAGE_CHARS:
            raise IntakeValidationError(f"Message must be 1-{MAX_MESSAGE_CHARS} characters", ["content"])

        transcript[index] = ChatMessage(role="patient", content=text)
        if self.session.summary is not None and index == self._final_comment_index:
            self.session.summary.patient_final_comments = text
        logger.info(f"Patient message {index} edited")
        self._publish_message(index, transcript[index], "edited")

        if self.session.status == InterviewStatus.COMPLETE:
            self._spawn(self._save())

    def reset(self) -> None:
        """Discard the session and return to Idle."""
        self._token += 1
        self._in_flight = None
        self._deferred = None
        self._paused_from = None
        self._end_reason = None
        self._final_comment_index = None
        self.timer.cancel()
        if self.capture is not None:
            self.capture.cancel()
        if self.playback is not None:
            self.playback.stop()
        previous = self.session.status
        self.session = InterviewSession(language=self.language)
        logger.info(f"Interview reset from {previous.value}")
        self._publish_status(previous, self.session.status)

    async def _request_turn(self, kind: str, answer: Optional[str] = None,
                            answer_index: Optional[int] = None) -> bool:
        self._token += 1
        token = self._token
        self._in_flight = token
        outcome = _Outcome(token=token, kind=kind, answer=answer, answer_index=answer_index)

        try:
            outcome.turn = await self.protocol.next_turn(
                self.session.intake,
                list(self.session.transcript),
                self.language,
                force_summary=(kind == FORCED_SUMMARY),
            )
        except ProtocolError as e:
            outcome.error = e
        finally:
            if self._in_flight == token:
                self._in_flight = None

        if token != self._token:
            logger.info(f"Discarding stale {kind} result (token {token}, current {self._token})")
            return True
        if self.session.status == InterviewStatus.PAUSED:
            logger.info(f"{kind} result arrived while paused; deferring")
            self._deferred = outcome
            return True
        return self._apply(outcome)

    def _apply(self, outcome: _Outcome) -> bool:
        if outcome.kind == FORCED_SUMMARY:
            return self._apply_forced_summary(outcome)

        if outcome.error is not None:
            self._fail(outcome)
            return False

        turn = outcome.turn
        if isinstance(turn, SummaryTurn):
            self._present_summary(turn)
        else:
            self._append("assistant", turn.question)
            self._set_status(InterviewStatus.AWAITING_PATIENT)
        return True

    def _apply_forced_summary(self, outcome: _Outcome) -> bool:
        if isinstance(outcome.turn, SummaryTurn):
            summary = outcome.turn
        else:
            if outcome.error is not None:
                logger.warning(f"Forced summary failed ({outcome.error}); synthesizing locally")
            else:
                logger.warning("Forced summary request returned a question; synthesizing locally")
            summary = synthesize_summary(self.session.intake, self.session.patient_messages(),
                                         self.summary_max_chars, self.language)
            self.session.summary_degraded = True

        if self._end_reason == EndReason.TIMEOUT:
            # The patient is gone; no final comments are collected.
            self.session.summary = self._stamp(summary)
            self._mark_complete()
            self._spawn(self._save())
        else:
            self._present_summary(summary)
        return True

    def _fail(self, outcome: _Outcome) -> None:
        error = outcome.error
        if outcome.kind == START:
            self.session.transcript = []
            self.session.started_at = None
            self._set_status(InterviewStatus.IDLE)
        else:
            self._rollback(outcome)
            self._set_status(InterviewStatus.AWAITING_PATIENT)
        self._report(error.user_message, "rate_limit" if isinstance(error, RateLimitError) else "protocol")

    def _rollback(self, outcome: _Outcome) -> None:
        index = outcome.answer_index
        transcript = self.session.transcript
        if index is not None and index == len(transcript) - 1 and transcript[index].role == "patient":
            removed = transcript.pop()
            self._publish_message(index, removed, "removed")
            logger.info("Rolled back the unprocessed answer")
            if self.restore_draft is not None:
                self.restore_draft(removed.content)

    def _stamp(self, summary: SummaryTurn) -> SummaryTurn:
        summary.interview_language = self.language
        return summary

    def _present_summary(self, summary: SummaryTurn) -> None:
        self.session.summary = self._stamp(summary)
        self._append("assistant", format_summary(summary))
        self._append("assistant", CLOSING_MESSAGE)
        self._append("assistant", FINAL_COMMENTS_PROMPT)
        self.session.awaiting_final_comments = True
        self._set_status(InterviewStatus.AWAITING_PATIENT)

    async def _complete(self) -> None:
        self._mark_complete()
        await self._save()

    def _mark_complete(self) -> None:
        self.session.awaiting_final_comments = False
        self.session.completed_at = datetime.now()
        self._set_status(InterviewStatus.COMPLETE)
        logger.info(f"Interview {self.session.session_id} complete "
                    f"({len(self.session.transcript)} messages, degraded={self.session.summary_degraded})")

    async def _save(self) -> None:
        if self.store is None:
            return
        try:
            await asyncio.to_thread(self.store.save_interview, self.session)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save interview {self.session.session_id}: {e}")
            self._report("The interview could not be saved.", "persistence", set_session_error=False)

    def _on_countdown_tick(self, remaining: int) -> None:
        publisher = self.publishers.get(TOPIC_INTERVIEW_COUNTDOWN)
        if publisher is not None:
            publisher.publish(CountdownEvent(session_id=self.session.session_id, remaining_seconds=remaining))

    def _on_pause_expired(self) -> None:
        if self.session.status != InterviewStatus.PAUSED:
            return
        logger.info("Pause countdown elapsed; ending interview")
        self._spawn(self.end_early(EndReason.TIMEOUT))

    def _spawn(self, coro) -> asyncio.Future:
        future = asyncio.ensure_future(coro)
        self._background.append(future)
        return future

    async def drain(self) -> None:
        """Wait for timer-driven work (timeout end, background saves) to finish."""
        while self._background:
            await self._background.pop(0)

    def _set_status(self, status: InterviewStatus) -> None:
        previous = self.session.status
        if previous == InterviewStatus.PAUSED and status != InterviewStatus.PAUSED:
            self.timer.cancel()
            self.session.pause_deadline = None
        if previous == status:
            return
        self.session.status = status
        logger.info(f"Interview status: {previous.value} -> {status.value}")
        self._publish_status(previous, status)

    def _append(self, role: str, content: str) -> int:
        message = ChatMessage(role=role, content=content)
        self.session.transcript.append(message)
        index = len(self.session.transcript) - 1
        logger.debug(f"Transcript[{index}] {role}: {content}")
        self._publish_message(index, message, "appended")
        return index

    def _report(self, message: str, kind: str, set_session_error: bool = True) -> None:
        if set_session_error:
            self.session.error = message
        publisher = self.publishers.get(TOPIC_INTERVIEW_ERROR)
        if publisher is not None:
            publisher.publish(ErrorEvent(source="interview", message=message, kind=kind))

    def _publish_status(self, previous: InterviewStatus, current: InterviewStatus) -> None:
        publisher = self.publishers.get(TOPIC_INTERVIEW_STATUS)
        if publisher is not None:
            publisher.publish(StatusEvent(session_id=self.session.session_id,
                                          previous=previous.value, current=current.value))

    def _publish_message(self, index: int, message: ChatMessage, action: str) -> None:
        publisher = self.publishers.get(TOPIC_INTERVIEW_MESSAGE)
        if publisher is not None:
            publisher.publish(MessageEvent(session_id=self.session.session_id, index=index,
                                           role=message.role, content=message.content, action=action))
