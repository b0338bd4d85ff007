"""
Transcript cleaning, validation and fingerprinting.

Everything in here is pure: no I/O, no logging of transcript content.
"""
import hashlib
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

MIN_TRANSCRIPT_LENGTH = 20
MAX_TRANSCRIPT_LENGTH = 100000

# Hesitations dropped from dictated German (and the odd French) consultations.
# Longer entries first so "ja also" wins over "also".
FILLER_WORDS = sorted(
    [
        "ähm",
        "äh",
        "ehm",
        "eh",
        "hm",
        "hmm",
        "uh",
        "uhm",
        "also",
        "ja also",
        "naja",
        "euh",
        "heu",
    ],
    key=len,
    reverse=True,
)

_FILLER_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(word) for word in FILLER_WORDS) + r")\b",
    re.IGNORECASE,
)
_WHITESPACE_PATTERN = re.compile(r"\s+")
_REPEATED_PUNCTUATION_PATTERN = re.compile(r"([.!?])(?:\s*[.!?])+")
_SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+")
_NON_WORD_PATTERN = re.compile(r"[^\w\s]")

# Upper bound on normalisation passes; every pass either shrinks the text or stops.
_MAX_CLEAN_PASSES = 10


class LengthIssue(str, Enum):
    EMPTY = "empty"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"


@dataclass(frozen=True)
class LengthCheck:
    """Outcome of validate_transcript_length."""

    valid: bool
    length: int
    error: Optional[str] = None
    reason: Optional[LengthIssue] = None


def _drop_repeated_sentences(text: str) -> str:
    sentences = _SENTENCE_SPLIT_PATTERN.split(text)
    kept = []
    for sentence in sentences:
        if kept and kept[-1].casefold() == sentence.casefold():
            continue
        kept.append(sentence)
    return " ".join(kept)


def _clean_pass(text: str) -> str:
    cleaned = _FILLER_PATTERN.sub("", text)
    cleaned = _WHITESPACE_PATTERN.sub(" ", cleaned).strip()
    cleaned = _REPEATED_PUNCTUATION_PATTERN.sub(r"\1", cleaned)
    cleaned = _drop_repeated_sentences(cleaned)
    return cleaned


def clean_transcript(text: Optional[str]) -> str:
    """
    Normalise a raw transcript.

    Removes filler words (whole word, case-insensitive), collapses whitespace,
    trims, collapses runs of terminal punctuation ("..!!" -> ".") and drops a
    sentence that repeats the one right before it. Passes are repeated until
    the text stops changing, so clean_transcript(clean_transcript(x)) equals
    clean_transcript(x).

    Args:
        text: Raw transcript or manually entered text

    Returns:
        The cleaned text ("" for None or non-string input)
    """
    if not text or not isinstance(text, str):
        return ""

    cleaned = text
    for _ in range(_MAX_CLEAN_PASSES):
        next_pass = _clean_pass(cleaned)
        if next_pass == cleaned:
            break
        cleaned = next_pass
    return cleaned


def validate_transcript_length(text: str) -> LengthCheck:
    """
    Check that a (cleaned) transcript is within the accepted bounds.

    Args:
        text: Transcript text, normally the output of clean_transcript

    Returns:
        LengthCheck with valid=False and a user-facing error when the trimmed
        length is 0, below MIN_TRANSCRIPT_LENGTH or above MAX_TRANSCRIPT_LENGTH
    """
    length = len((text or "").strip())

    if length == 0:
        return LengthCheck(
            valid=False,
            length=0,
            error="Le transcript est vide.",
            reason=LengthIssue.EMPTY,
        )

    if length < MIN_TRANSCRIPT_LENGTH:
        return LengthCheck(
            valid=False,
            length=length,
            error=(
                f"Le transcript est trop court ({length} caractères, "
                f"minimum {MIN_TRANSCRIPT_LENGTH})."
            ),
            reason=LengthIssue.TOO_SHORT,
        )

    if length > MAX_TRANSCRIPT_LENGTH:
        return LengthCheck(
            valid=False,
            length=length,
            error=(
                f"Le transcript est trop long ({length} caractères, "
                f"maximum {MAX_TRANSCRIPT_LENGTH})."
            ),
            reason=LengthIssue.TOO_LONG,
        )

    return LengthCheck(valid=True, length=length)


def fingerprint(text: Optional[str]) -> str:
    """
    Content fingerprint used for idempotency checks.

    The text is cleaned first, so two raw inputs that clean to the same string
    share a fingerprint. 64-bit BLAKE2b: only used for equality, a collision
    would at worst return an existing note for a different transcript.
    """
    cleaned = clean_transcript(text)
    return hashlib.blake2b(cleaned.encode("utf-8"), digest_size=8).hexdigest()


def has_meaningful_content(text: str) -> bool:
    """True when the text minus punctuation still reaches the minimum length."""
    content_only = _NON_WORD_PATTERN.sub("", text or "").strip()
    return len(content_only) >= MIN_TRANSCRIPT_LENGTH


def estimate_word_count(text: str) -> int:
    trimmed = (text or "").strip()
    if not trimmed:
        return 0
    return len(trimmed.split())


def format_transcript_for_display(text: str) -> str:
    """Put a blank line after every sentence."""
    formatted = re.sub(r"([.!?])\s+", r"\1\n\n", text or "")
    formatted = re.sub(r"\n{3,}", "\n\n", formatted)
    return formatted.strip()


def truncate_transcript(text: str, max_length: int = 200) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3].strip() + "..."


def extract_deepgram_metadata(raw: Any) -> Dict[str, Any]:
    """
    Pull language, confidence and duration out of a Deepgram response.

    Handles both the prerecorded shape (results.channels[0]) and the streaming
    shape (channel at the top level). Missing values are simply left out.

    Args:
        raw: Decoded Deepgram JSON payload

    Returns:
        Dict with any of "language", "confidence", "duration"
    """
    if not isinstance(raw, dict):
        return {}

    metadata = raw.get("metadata") or {}
    channel = raw.get("channel")
    if channel is None:
        channels = (raw.get("results") or {}).get("channels") or []
        channel = channels[0] if channels else {}

    alternatives = (channel or {}).get("alternatives") or []
    first_alternative = alternatives[0] if alternatives else {}

    extracted: Dict[str, Any] = {}

    language = (channel or {}).get("detected_language") or (metadata.get("model_info") or {}).get("name")
    if language:
        extracted["language"] = language

    confidence = first_alternative.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        extracted["confidence"] = float(confidence)

    duration = metadata.get("duration")
    if isinstance(duration, (int, float)) and not isinstance(duration, bool) and not math.isnan(duration):
        extracted["duration"] = float(duration)

    return extracted
