"""Offline interview generator with the same contract as the remote protocol."""

import logging
from typing import List, Union

from ..models.protocol import ChatMessage, InterviewIntake, QuestionTurn, SummaryTurn

logger = logging.getLogger(__name__)

FOLLOW_UP_QUESTIONS = [
    ("Have you noticed fevers or chills over the last few days?",
     "Fever pattern clarifies infectious severity and red flags."),
    ("Any difficulty swallowing saliva, breathing, or opening your mouth?",
     "Airway compromise symptoms require urgent escalation."),
    ("Have you experienced any associated symptoms like nausea, vomiting, or changes in appetite?",
     "Associated symptoms help complete the clinical picture and identify red flags."),
    ("Are there any factors that make your symptoms better or worse?",
     "Identifying triggers and relieving factors aids in diagnosis and management."),
    ("Have you tried any medications or treatments for this, and if so, what was the response?",
     "Treatment response provides diagnostic clues and informs management."),
    ("Is there anything else about your symptoms or your health that you think might be relevant?",
     "Final check for any missed red flags or important details."),
]


def first_question(chief_complaint: str) -> QuestionTurn:
    complaint = chief_complaint.lower()
    if "shortness of breath" in complaint or "dyspnea" in complaint:
        return QuestionTurn(type="question",
                            question="How does the shortness of breath vary with exertion or lying flat?",
                            rationale="Helps stratify pulmonary vs. cardiac causes and severity.")
    if "chest pain" in complaint or "pressure" in complaint:
        return QuestionTurn(type="question",
                            question="Can you describe the chest discomfort? Does it radiate, "
                                     "and what triggers or relieves it?",
                            rationale="Character and radiation clarify ischemic vs. non-cardiac etiologies.")
    if "fever" in complaint or "sore throat" in complaint:
        return QuestionTurn(type="question",
                            question="Have you noticed any cough or nasal congestion with this?",
                            rationale="Helps differentiate localized pharyngitis from broader "
                                      "respiratory infection.")
    return QuestionTurn(type="question",
                        question=f'Can you describe more about the symptoms related to "{chief_complaint}"?',
                        rationale="Establishes additional context when the intake doesn't match common templates.")


class MockInterviewProtocol:
    """Asks a complaint-specific opener, six fixed follow-ups, then summarizes."""

    def __init__(self, summary_after: int = len(FOLLOW_UP_QUESTIONS) + 1):
        self.summary_after = summary_after
        self.requests_sent = 0

    async def next_turn(self, intake: InterviewIntake, transcript: List[ChatMessage], language: str,
                        force_summary: bool = False) -> Union[QuestionTurn, SummaryTurn]:
        self.requests_sent += 1
        patient_turns = sum(1 for m in transcript if m.role == "patient")
        logger.info(f"Mock turn for {patient_turns} patient answers (force_summary={force_summary})")

        if not force_summary and patient_turns < self.summary_after:
            if patient_turns == 0:
                return first_question(intake.chief_complaint)
            question, rationale = FOLLOW_UP_QUESTIONS[(patient_turns - 1) % len(FOLLOW_UP_QUESTIONS)]
            return QuestionTurn(type="question", question=question, rationale=rationale)

        return self._summary(intake, transcript)

    def _summary(self, intake: InterviewIntake, transcript: List[ChatMessage]) -> SummaryTurn:
        profile = intake.patient_profile
        answers = [m.content for m in transcript if m.role == "patient"]
        return SummaryTurn(
            positives=answers[:3],
            negatives=["No red flag symptoms reported in the mock interview"],
            summary=(f"Mock history for {intake.chief_complaint}. Baseline: {profile.sex} patient, "
                     f"age {profile.age}, PMH {profile.pmh}, current medications "
                     f"{profile.current_medications}, family doctor {profile.family_doctor}."),
            investigations=["Investigations to be decided by the physician"],
            assessment="Mock assessment generated offline.",
            plan=["Physician to review the interview transcript."],
        )
