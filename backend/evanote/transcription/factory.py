from typing import Optional
from loguru import logger

from .base import BaseTranscriptionService, TranscriptionResult
from .deepgram import DeepgramTranscriptionService
from ..config import Settings
from ..exceptions import ConfigurationError


class DummyTranscriptionService(BaseTranscriptionService):
    """
    A dummy transcription service that returns placeholder text.
    Useful for testing without making API calls.
    """

    def __init__(self, text: Optional[str] = None):
        logger.warning("Using dummy transcription service - will return placeholder text")
        self.text = text or "Der Patient berichtet über Schmerzen im rechten Knie seit zwei Wochen."

    @property
    def model_id(self) -> str:
        return "dummy:placeholder"

    async def transcribe(self, audio_data: str, mime_type: str = "audio/webm") -> TranscriptionResult:
        return TranscriptionResult(
            text=self.text,
            raw={"provider": "dummy"},
            language="de",
            confidence=1.0,
            duration_seconds=None,
        )


def get_transcription_service(provider: str, settings: Settings, **kwargs) -> BaseTranscriptionService:
    """
    Factory method to get an instance of a transcription service.
    Change provider easily by passing a different string.

    Args:
        provider: The name of the transcription provider to use
        settings: Application settings (API key, model, limits)
        **kwargs: Overrides passed to the service constructor

    Returns:
        An instance of a transcription service

    Raises:
        ConfigurationError: If the provider is unknown or not configured
    """
    if provider == "deepgram":
        if not settings.DEEPGRAM_API_KEY:
            raise ConfigurationError(
                "Clé API Deepgram manquante.",
                context={"setting": "DEEPGRAM_API_KEY"},
            )
        options = {
            "api_key": settings.DEEPGRAM_API_KEY,
            "model": settings.DEEPGRAM_MODEL,
            "language": settings.DEEPGRAM_LANGUAGE,
            "timeout": settings.STT_TIMEOUT_SECONDS,
            "max_duration_seconds": settings.STT_MAX_DURATION_SECONDS,
        }
        options.update(kwargs)
        logger.info(f"Created Deepgram batch transcription service (model={options['model']})")
        return DeepgramTranscriptionService(**options)
    elif provider == "dummy":
        return DummyTranscriptionService(**kwargs)
    else:
        raise ConfigurationError(
            "Fournisseur de transcription inconnu.",
            context={"provider": provider},
        )
