"""
Pydantic models for API schemas and the SOAP payload validator
"""
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from uuid import UUID
from datetime import datetime

from .exceptions import SchemaViolation

SOAP_FIELDS = ("subjective", "objective", "assessment", "plan")
SOAP_FIELD_MAX_LENGTH = 10000

_SOAP_LABELS = {
    "subjective": "Subjective",
    "objective": "Objective",
    "assessment": "Assessment",
    "plan": "Plan",
}


class SoapNote(BaseModel):
    """The four-section clinical note. Use validate_soap to build one from untrusted data."""

    model_config = ConfigDict(extra="forbid")

    subjective: str = Field(min_length=1, max_length=SOAP_FIELD_MAX_LENGTH, strict=True)
    objective: str = Field(min_length=1, max_length=SOAP_FIELD_MAX_LENGTH, strict=True)
    assessment: str = Field(min_length=1, max_length=SOAP_FIELD_MAX_LENGTH, strict=True)
    plan: str = Field(min_length=1, max_length=SOAP_FIELD_MAX_LENGTH, strict=True)

    @field_validator(*SOAP_FIELDS)
    @classmethod
    def _not_blank(cls, value: str) -> str:
        # Checked on the trimmed text, the stored value keeps its whitespace
        if not value.strip():
            raise ValueError("blank")
        return value


def _violation_message(error: Dict[str, Any], label: str) -> str:
    error_type = error["type"]
    if error_type == "string_too_long":
        return f"Le champ {label} est trop long (max 10 000 caractères)"
    if error_type in ("string_too_short", "value_error"):
        return f"Le champ {label} ne peut pas être vide"
    return f"Le champ {label} est manquant ou n'est pas du texte"


def validate_soap(candidate: Any) -> SoapNote:
    """
    Check a candidate SOAP payload and return it as a SoapNote.

    Fields are reported in order subjective, objective, assessment, plan; the
    first violation wins, unexpected keys come last. Values are kept as given
    (no trimming).

    Args:
        candidate: Decoded JSON object from the model or from a manual edit

    Returns:
        SoapNote

    Raises:
        SchemaViolation: If the payload is not an object, a field is missing,
            not a string, blank or longer than SOAP_FIELD_MAX_LENGTH, or there
            are extra keys
    """
    if not isinstance(candidate, dict):
        raise SchemaViolation("La note SOAP doit être un objet JSON.", raw=candidate)

    try:
        return SoapNote.model_validate(candidate)
    except PydanticValidationError as e:
        errors = e.errors()

    for field in SOAP_FIELDS:
        for error in errors:
            if error["loc"] and error["loc"][0] == field:
                raise SchemaViolation(_violation_message(error, _SOAP_LABELS[field]), field=field, raw=candidate)

    extra = sorted(str(error["loc"][0]) for error in errors if error["type"] == "extra_forbidden")
    raise SchemaViolation(
        f"Champs inattendus dans la note SOAP : {', '.join(extra)}",
        field=extra[0] if extra else None,
        raw=candidate,
    )


class ActionResult(BaseModel):
    """Uniform result of every public service operation."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: str) -> "ActionResult":
        return cls(success=False, error=error, code=code)


# Patient models
class PatientCreateRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100, pattern=r"\S")
    last_name: str = Field(min_length=1, max_length=100, pattern=r"\S")


class PatientResponse(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    created_at: datetime


# Visit models
class VisitCreateRequest(BaseModel):
    patient_id: UUID
    language_pref: str = Field(default="de", pattern=r"^(de|fr|auto)$")


class VisitStatusUpdateRequest(BaseModel):
    status: str = Field(pattern=r"^(draft|recording|processing|completed|failed)$")


class VisitResponse(BaseModel):
    id: UUID
    patient_id: UUID
    status: str
    language_pref: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# Transcript models
class TranscriptCreateRequest(BaseModel):
    text: str
    raw_json: Optional[Dict[str, Any]] = None
    language: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class TranscriptionRequest(BaseModel):
    audio_data: str
    mime_type: Optional[str] = "audio/webm"


class TranscriptResponse(BaseModel):
    id: UUID
    visit_id: UUID
    text: str
    language: Optional[str] = None
    confidence: Optional[float] = None
    created_at: datetime


# SOAP note models
class GenerationOptions(BaseModel):
    # None means the visit's language_pref
    language: Optional[str] = Field(default=None, pattern=r"^(de|fr|auto)$")
    detail: str = Field(default="detailed", pattern=r"^(concise|detailed)$")
    body_region: Optional[str] = Field(default=None, max_length=200)
    persist_transcript: bool = True
    force: bool = False


class SOAPGenerateRequest(BaseModel):
    raw_text: str
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class SOAPRegenerateRequest(BaseModel):
    raw_text: Optional[str] = None
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class NoteResponse(BaseModel):
    id: UUID
    visit_id: UUID
    soap: SoapNote
    model: str
    version: int
    is_final: bool
    created_at: datetime


class NoteExportResponse(BaseModel):
    note_id: UUID
    format: str
    content: str
    complete: bool
    missing_sections: List[str] = []
