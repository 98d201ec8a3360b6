"""Client for the remote interview protocol (question/summary generator)."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Union

import aiohttp
from pydantic import ValidationError

from ..errors import IntakeValidationError, ProtocolError, RateLimitError
from ..language import normalize_language_code
from ..models.protocol import (
    MAX_TRANSCRIPT_MESSAGES,
    ChatMessage,
    InterviewIntake,
    QuestionTurn,
    SummaryTurn,
    parse_turn,
)

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("quota", "rate limit", "429", "too many requests")
_MAX_TEXT_MESSAGE = 300


class InterviewProtocol(Protocol):
    """Anything that can produce the next interview turn."""

    async def next_turn(self, intake: InterviewIntake, transcript: List[ChatMessage], language: str,
                        force_summary: bool = False) -> Union[QuestionTurn, SummaryTurn]:
        ...


def build_request(intake: InterviewIntake, transcript: List[ChatMessage], language: str,
                  force_summary: bool = False) -> Dict[str, Any]:
    """Serialize a protocol request body with the generator's camelCase field names.

    Raises:
        IntakeValidationError: If the transcript is longer than the generator accepts
    """
    if len(transcript) > MAX_TRANSCRIPT_MESSAGES:
        raise IntakeValidationError(
            f"Transcript has {len(transcript)} messages; at most {MAX_TRANSCRIPT_MESSAGES} are accepted",
            ["transcript"])
    body = intake.model_dump(by_alias=True, exclude_none=True)
    body["transcript"] = [m.model_dump() for m in transcript]
    body["language"] = normalize_language_code(language)
    if force_summary:
        body["forceSummary"] = True
    return body


def classify_error(status: int, body: str) -> ProtocolError:
    """Turn a non-2xx response into the matching ProtocolError.

    Args:
        status: HTTP status code
        body: Raw response body (JSON or plain text)
    """
    message: Optional[str] = None
    retry_after: Optional[int] = None
    try:
        data = json.loads(body)
    except ValueError:
        data = None

    if isinstance(data, dict):
        for key in ("error", "message"):
            value = data.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if isinstance(value, str) and value.strip():
                message = value.strip()
                break
        if isinstance(data.get("retryAfterSeconds"), int):
            retry_after = data["retryAfterSeconds"]
    elif body and body.strip():
        message = body.strip()[:_MAX_TEXT_MESSAGE]

    haystack = f"{message or ''} {body or ''}".lower()
    if status == 429 or any(marker in haystack for marker in _QUOTA_MARKERS):
        return RateLimitError(status=status, retry_after_seconds=retry_after)
    return ProtocolError(message or ProtocolError.DEFAULT_MESSAGE, status)


class InterviewProtocolClient:
    """POSTs interview turns to ``{base_url}/api/interview``."""

    def __init__(self, base_url: str, timeout_seconds: float = 60):
        """Initialize protocol client.

        Args:
            base_url: Root URL of the interview service
            timeout_seconds: Total timeout for one turn request
        """
        self.endpoint = f"{base_url.rstrip('/')}/api/interview"
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.requests_sent = 0
        logger.info(f"InterviewProtocolClient initialized: {self.endpoint}")

    async def next_turn(self, intake: InterviewIntake, transcript: List[ChatMessage], language: str,
                        force_summary: bool = False) -> Union[QuestionTurn, SummaryTurn]:
        """Request the next question or the summary.

        Raises:
            RateLimitError: The generator is over its quota or rate limit
            ProtocolError: Any other failure, including network errors and malformed replies
        """
        payload = build_request(intake, transcript, language, force_summary)
        self.requests_sent += 1
        logger.info(f"Requesting turn {self.requests_sent} ({len(payload['transcript'])} messages, "
                    f"force_summary={force_summary})")

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.endpoint, json=payload) as response:
                    body = await response.text()
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Interview request failed: {e}")
            raise ProtocolError() from e

        if not 200 <= status < 300:
            error = classify_error(status, body)
            logger.error(f"Interview service returned {status}: {error}")
            raise error

        try:
            turn = parse_turn(json.loads(body))
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed interview response: {e}")
            raise ProtocolError(status=status) from e

        logger.info(f"Received {turn.type} turn")
        return turn
