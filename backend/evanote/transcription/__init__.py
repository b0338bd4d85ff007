"""Batch transcription providers."""

from .factory import get_transcription_service, DummyTranscriptionService
from .base import BaseTranscriptionService, TranscriptionResult
