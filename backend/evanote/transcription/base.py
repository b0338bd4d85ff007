from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class TranscriptionResult:
    text: str
    raw: Dict[str, Any] = field(default_factory=dict)
    language: Optional[str] = None
    confidence: Optional[float] = None
    duration_seconds: Optional[float] = None


class BaseTranscriptionService(ABC):
    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier used in usage metrics, e.g. "deepgram:nova-3"."""

    @abstractmethod
    async def transcribe(self, audio_data: str, mime_type: str = "audio/webm") -> TranscriptionResult:
        """
        Transcribe the given audio data.

        Args:
            audio_data: Base64 encoded audio
            mime_type: Content type of the decoded audio

        Returns:
            TranscriptionResult with the text and whatever metadata the provider reports

        Raises:
            ValidationError: If the audio cannot be decoded or is too long
            TranscriptionError: If the provider call fails
        """
