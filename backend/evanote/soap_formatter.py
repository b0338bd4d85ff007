"""
SOAP note formatting for copy/paste and export.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .schemas import SOAP_FIELDS

SEPARATOR_LINE = "─" * 60
PLACEHOLDERS = ("N/A", "N/D")

_COPY_HEADERS = {
    "de": {"subjective": "SUBJEKTIV", "objective": "OBJEKTIV", "assessment": "ASSESSMENT", "plan": "PLAN"},
    "fr": {"subjective": "SUBJECTIF", "objective": "OBJECTIF", "assessment": "ÉVALUATION", "plan": "PLAN"},
}

_MARKDOWN_HEADERS = {
    "de": {"subjective": "Subjektiv", "objective": "Objektiv", "assessment": "Assessment", "plan": "Plan"},
    "fr": {"subjective": "Subjectif", "objective": "Objectif", "assessment": "Évaluation", "plan": "Plan"},
}


@dataclass(frozen=True)
class Completeness:
    complete: bool
    missing_sections: List[str] = field(default_factory=list)


def _headers(table: Dict[str, Dict[str, str]], language: str) -> Dict[str, str]:
    return table["fr"] if language == "fr" else table["de"]


def format_soap_for_copy(
    soap: Mapping[str, str],
    include_headers: bool = True,
    include_separators: bool = True,
    language: str = "de",
) -> str:
    """
    Plain text for pasting into a practice management system.

    Args:
        soap: Mapping with the four SOAP sections
        include_headers: Prefix each section with its upper-case header
        include_separators: Put a horizontal rule between sections
        language: "de" or "fr" headers

    Returns:
        Formatted text, trimmed
    """
    separator = f"\n{SEPARATOR_LINE}\n" if include_separators else "\n"
    headers = _headers(_COPY_HEADERS, language)

    lines: List[str] = []
    for index, section in enumerate(SOAP_FIELDS):
        if include_headers:
            lines.append(f"{headers[section]}:")
        lines.append(soap[section])
        if index < len(SOAP_FIELDS) - 1:
            lines.append(separator)

    return "\n".join(lines).strip()


def format_soap_as_json(soap: Mapping[str, str]) -> str:
    return json.dumps({section: soap[section] for section in SOAP_FIELDS}, ensure_ascii=False, indent=2)


def format_soap_with_metadata(
    soap: Mapping[str, str],
    model: str,
    version: int,
    created_at: datetime,
    patient_name: Optional[str] = None,
    visit_date: Optional[str] = None,
    language: str = "de",
) -> str:
    """Copy text preceded by a header block with patient, date, model and version."""
    header_lines = [
        SEPARATOR_LINE,
        "EVA Note - SOAP Dokumentation",
        f"Patient: {patient_name}" if patient_name else None,
        f"Datum: {visit_date}" if visit_date else None,
        f"Generiert: {created_at.strftime('%d.%m.%Y, %H:%M:%S')}",
        f"Modell: {model} (v{version})",
        SEPARATOR_LINE,
        "",
    ]
    header = "\n".join(line for line in header_lines if line is not None)
    body = format_soap_for_copy(soap, include_headers=True, include_separators=True, language=language)
    return f"{header}\n{body}"


def format_soap_as_markdown(soap: Mapping[str, str], language: str = "de") -> str:
    headers = _headers(_MARKDOWN_HEADERS, language)
    blocks = [f"## {headers[section]}\n\n{soap[section]}\n" for section in SOAP_FIELDS]
    return "\n".join(blocks)


def get_soap_section_lengths(soap: Mapping[str, str]) -> Dict[str, int]:
    lengths = {section: len(soap[section]) for section in SOAP_FIELDS}
    lengths["total"] = sum(lengths.values())
    return lengths


def validate_soap_completeness(soap: Mapping[str, Any]) -> Completeness:
    """A section counts as missing when it is empty, blank or just the placeholder."""
    missing = []
    for section in SOAP_FIELDS:
        value = soap.get(section)
        if not value or not str(value).strip() or str(value).strip() in PLACEHOLDERS:
            missing.append(section)
    return Completeness(complete=not missing, missing_sections=missing)


def truncate_soap(soap: Mapping[str, str], max_length: int = 200) -> Dict[str, str]:
    """Shorten every section to max_length characters for previews."""

    def truncate(text: str) -> str:
        return text[: max_length - 3] + "..." if len(text) > max_length else text

    return {section: truncate(soap[section]) for section in SOAP_FIELDS}
