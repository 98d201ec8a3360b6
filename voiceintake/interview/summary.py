"""Minimal summary built locally when the interview generator cannot provide one."""

import logging
from typing import List

from ..models.protocol import InterviewIntake, SummaryTurn

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 1500


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max(max_chars - 3, 0)].rstrip() + "..."


def synthesize_summary(intake: InterviewIntake, patient_messages: List[str],
                       max_chars: int = DEFAULT_MAX_CHARS, language: str = "en") -> SummaryTurn:
    """Build a degraded summary from the profile and the patient's own words.

    Args:
        intake: The validated intake of the session
        patient_messages: Patient answers in transcript order
        max_chars: Upper bound on the length of the summary text
        language: Interview language code

    Returns:
        A SummaryTurn whose ``summary`` never exceeds ``max_chars``
    """
    profile = intake.patient_profile
    opening = f"{profile.age} year old {profile.sex} patient presenting with {intake.chief_complaint}."

    answers = " ".join(m.strip() for m in patient_messages if m.strip())
    if answers:
        body = f"{opening} Patient reported: {answers}"
    else:
        body = f"{opening} No patient responses were recorded."

    logger.info(f"Synthesized local summary from {len(patient_messages)} patient messages")
    return SummaryTurn(
        summary=_truncate(body, max_chars),
        positives=[],
        negatives=[],
        investigations=[],
        assessment="Interview ended before a full history was generated; clinical assessment pending.",
        plan=["Physician to review the interview transcript."],
        interview_language=language,
    )
