import base64
import binascii
import httpx
from typing import Optional
from loguru import logger

from .base import BaseTranscriptionService, TranscriptionResult
from ..exceptions import TranscriptionError, ValidationError
from ..transcript_utils import extract_deepgram_metadata


class DeepgramTranscriptionService(BaseTranscriptionService):
    """
    A transcription service that uses the Deepgram prerecorded API.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "nova-3",
        language: str = "de",
        timeout: float = 120.0,
        max_duration_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Deepgram transcription service.

        Args:
            api_key: The Deepgram API key
            model: Deepgram model name
            language: Language hint
            timeout: HTTP timeout in seconds
            max_duration_seconds: Reject recordings longer than this
            transport: Optional httpx transport (tests)
        """
        self.api_key = api_key
        self.model = model
        self.language = language
        self.timeout = timeout
        self.max_duration_seconds = max_duration_seconds
        self.transport = transport
        self.base_url = "https://api.deepgram.com/v1/listen"

    @property
    def model_id(self) -> str:
        return f"deepgram:{self.model}"

    async def transcribe(self, audio_data: str, mime_type: str = "audio/webm") -> TranscriptionResult:
        """
        Transcribe audio data using the Deepgram API.

        Args:
            audio_data: Base64 encoded audio data
            mime_type: Content type of the decoded audio

        Returns:
            TranscriptionResult with text, language, confidence and duration
        """
        try:
            decoded_audio = base64.b64decode(audio_data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("Données audio invalides.") from e

        if not decoded_audio:
            raise ValidationError("Données audio vides.")

        headers = {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": mime_type,
        }
        params = {
            "model": self.model,
            "language": self.language,
            "punctuate": "true",
            "smart_format": "true",
        }

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.base_url,
                    headers=headers,
                    params=params,
                    content=decoded_audio,
                )
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Deepgram API error: {e.response.status_code}")
            raise TranscriptionError(context={"status": e.response.status_code}) from e
        except httpx.HTTPError as e:
            logger.error(f"Deepgram request failed: {type(e).__name__}")
            raise TranscriptionError() from e
        except ValueError as e:
            raise TranscriptionError(context={"reason": "invalid JSON"}) from e

        channels = (result.get("results") or {}).get("channels") or []
        alternatives = (channels[0].get("alternatives") or []) if channels else []
        text = alternatives[0].get("transcript", "") if alternatives else ""

        metadata = extract_deepgram_metadata(result)
        duration = metadata.get("duration")
        if self.max_duration_seconds and duration and duration > self.max_duration_seconds:
            raise ValidationError(
                f"L'enregistrement est trop long (maximum {self.max_duration_seconds} secondes).",
                context={"duration": duration},
            )

        logger.info(f"Deepgram transcription done ({len(text)} chars, {duration or 0:.1f}s audio)")
        return TranscriptionResult(
            text=text,
            raw=result,
            language=metadata.get("language") or self.language,
            confidence=metadata.get("confidence"),
            duration_seconds=duration,
        )
