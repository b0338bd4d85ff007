import asyncio
from loguru import logger
from .base import BaseSOAPProcessor, GenerationSuccess, ProviderResponse


class MockSOAPProcessor(BaseSOAPProcessor):
    """
    A mock SOAP processor for local development and demos.
    Builds a deterministic SOAP note from the prompt without making external API calls.
    """

    def __init__(self, delay_seconds: float = 0.0):
        """
        Initialize the mock SOAP processor.

        Args:
            delay_seconds: Artificial latency to simulate an API call
        """
        self.delay_seconds = delay_seconds

    @property
    def model_id(self) -> str:
        return "mock:soap"

    @staticmethod
    def _extract_transcript(user_prompt: str) -> str:
        parts = user_prompt.split('"""')
        return parts[1].strip() if len(parts) >= 3 else user_prompt.strip()

    async def call_provider(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> ProviderResponse:
        logger.info("Generating mock SOAP note")

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        transcript = self._extract_transcript(user_prompt)
        words = transcript.split()
        placeholder = "N/D" if "N/D" in system_prompt else "N/A"

        return GenerationSuccess(
            payload={
                "subjective": transcript[:500] or placeholder,
                "objective": f"{len(words)} mots transcrits" if placeholder == "N/D" else f"{len(words)} Wörter transkribiert",
                "assessment": placeholder,
                "plan": placeholder,
            }
        )
