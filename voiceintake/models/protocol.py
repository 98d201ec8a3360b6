"""Wire models for the interview protocol (intake, transcript messages, turns)."""

import re
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

MAX_MESSAGE_CHARS = 1000
MAX_TRANSCRIPT_MESSAGES = 200

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ChatMessage(BaseModel):
    """One transcript entry, spoken by the assistant or the patient."""
    model_config = ConfigDict(frozen=True)

    role: Literal["assistant", "patient"]
    content: str


class PatientProfile(BaseModel):
    """Demographics and background collected before the interview starts."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    sex: Literal["female", "male", "nonbinary", "unspecified"]
    age: int = Field(ge=0, le=120)
    pmh: str = Field(min_length=3, max_length=600)
    family_history: str = Field(alias="familyHistory", min_length=3, max_length=600)
    family_doctor: str = Field(alias="familyDoctor", min_length=3, max_length=200)
    current_medications: str = Field(alias="currentMedications", min_length=3, max_length=600)
    allergies: str = Field(min_length=3, max_length=600)


class InterviewIntake(BaseModel):
    """Everything the interview generator needs besides the transcript.

    Immutable once the interview starts.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    chief_complaint: str = Field(alias="chiefComplaint", min_length=3)
    patient_profile: PatientProfile = Field(alias="patientProfile")
    patient_email: str = Field(alias="patientEmail")
    physician_id: str = Field(alias="physicianId", min_length=1)
    image_summary: Optional[str] = Field(default=None, alias="imageSummary", max_length=800)
    lab_report_summary: Optional[str] = Field(default=None, alias="labReportSummary", max_length=10000)
    previous_lab_report_summary: Optional[str] = Field(
        default=None, alias="previousLabReportSummary", max_length=10000)
    form_summary: Optional[str] = Field(default=None, alias="formSummary", max_length=10000)
    med_pmh_summary: Optional[str] = Field(default=None, alias="medPmhSummary", max_length=10000)
    patient_background: Optional[str] = Field(default=None, alias="patientBackground", max_length=10000)
    interview_guidance: Optional[str] = Field(default=None, alias="interviewGuidance", max_length=50000)

    @field_validator("patient_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not _EMAIL_RE.match(value):
            raise ValueError("Valid patient email is required.")
        return value

    @field_validator(
        "image_summary", "lab_report_summary", "previous_lab_report_summary", "form_summary",
        "med_pmh_summary", "patient_background", "interview_guidance",
    )
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class QuestionTurn(BaseModel):
    type: Literal["question"]
    question: str = Field(min_length=1, max_length=MAX_MESSAGE_CHARS)
    rationale: Optional[str] = None


class SummaryTurn(BaseModel):
    """Structured history handed to the physician."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["summary"] = "summary"
    positives: List[str] = Field(default_factory=list)
    negatives: List[str] = Field(default_factory=list)
    physical_findings: Optional[List[str]] = Field(default=None, alias="physicalFindings")
    summary: str
    investigations: List[str] = Field(default_factory=list)
    assessment: str = ""
    plan: List[str] = Field(default_factory=list)
    patient_final_comments: Optional[str] = Field(default=None, alias="patientFinalQuestionsComments")
    interview_language: Optional[str] = Field(default=None, alias="interviewLanguage")


InterviewTurn = Annotated[Union[QuestionTurn, SummaryTurn], Field(discriminator="type")]

_turn_adapter = TypeAdapter(InterviewTurn)


def parse_turn(payload) -> Union[QuestionTurn, SummaryTurn]:
    """Validate a protocol response body into a question or a summary."""
    return _turn_adapter.validate_python(payload)
