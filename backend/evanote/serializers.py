"""Plain-dict views of ORM rows, used as ActionResult payloads."""
from typing import Any, Dict, Optional

from .models import Note, Patient, Transcript, Visit


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_patient(patient: Patient) -> Dict[str, Any]:
    return {
        "id": str(patient.id),
        "first_name": patient.first_name,
        "last_name": patient.last_name,
        "created_at": _iso(patient.created_at),
    }


def serialize_visit(visit: Visit) -> Dict[str, Any]:
    return {
        "id": str(visit.id),
        "patient_id": str(visit.patient_id),
        "status": visit.status,
        "language_pref": visit.language_pref,
        "started_at": _iso(visit.started_at),
        "ended_at": _iso(visit.ended_at),
        "created_at": _iso(visit.created_at),
        "updated_at": _iso(visit.updated_at),
    }


def serialize_transcript(transcript: Transcript) -> Dict[str, Any]:
    # raw_json stays server side
    return {
        "id": str(transcript.id),
        "visit_id": str(transcript.visit_id),
        "text": transcript.text,
        "language": transcript.language,
        "confidence": transcript.confidence,
        "created_at": _iso(transcript.created_at),
    }


def serialize_note(note: Note) -> Dict[str, Any]:
    return {
        "id": str(note.id),
        "visit_id": str(note.visit_id),
        "soap": dict(note.soap),
        "model": note.model,
        "version": note.version,
        "is_final": note.is_final,
        "created_at": _iso(note.created_at),
    }
