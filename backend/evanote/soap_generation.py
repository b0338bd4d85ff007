import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from loguru import logger

from .exceptions import GenerationFailure, ValidationError
from .prompts import build_prompts
from .schemas import SoapNote, validate_soap
from .soap_processor.base import BaseSOAPProcessor
from .transcript_utils import clean_transcript, validate_transcript_length

MAX_ATTEMPTS = 3
# Delay after attempt n is RETRY_DELAYS[n - 1]; nothing is slept after the last attempt.
RETRY_DELAYS = (1.0, 2.0, 3.0)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class GeneratedSoap:
    soap: SoapNote
    tokens_in: int
    tokens_out: int
    attempts: int
    model: str


class SoapGenerator:
    """
    Retry controller around a SOAP processor.

    Cleans and length-checks the transcript once, then calls the processor up
    to MAX_ATTEMPTS times. Transport errors, malformed output and schema
    violations are all retried; input validation errors are not.
    """

    def __init__(
        self,
        processor: BaseSOAPProcessor,
        max_output_tokens: int = 1024,
        sleep: Optional[Sleep] = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delays=RETRY_DELAYS,
    ):
        self.processor = processor
        self.max_output_tokens = max_output_tokens
        self.sleep = sleep or asyncio.sleep
        self.max_attempts = max_attempts
        self.retry_delays = tuple(retry_delays)

    @property
    def model_id(self) -> str:
        return self.processor.model_id

    def _delay_after(self, attempt: int) -> float:
        index = min(attempt - 1, len(self.retry_delays) - 1)
        return self.retry_delays[index]

    async def generate_with_retry(
        self,
        raw_text: str,
        language: str = "de",
        detail: str = "detailed",
        body_region: Optional[str] = None,
    ) -> GeneratedSoap:
        """
        Produce a validated SOAP note from raw text.

        Args:
            raw_text: Transcript or manual notes, uncleaned
            language: "de", "fr" or "auto"
            detail: "concise" or "detailed"
            body_region: Optional focus region for the prompt

        Returns:
            GeneratedSoap with the validated note and token usage of the
            successful attempt

        Raises:
            ValidationError: If the cleaned text fails the length check (no attempt is made)
            GenerationFailure: After MAX_ATTEMPTS failed attempts, with attempts
                set and the last error as cause
        """
        cleaned = clean_transcript(raw_text)
        length_check = validate_transcript_length(cleaned)
        if not length_check.valid:
            raise ValidationError(
                length_check.error,
                context={"reason": length_check.reason.value, "length": length_check.length},
            )

        prompts = build_prompts(language, cleaned, detail, body_region)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await self.processor.generate(
                    prompts.system, prompts.user, self.max_output_tokens
                )
                soap = validate_soap(result.soap_candidate)
                if attempt > 1:
                    logger.info(f"SOAP generation succeeded on attempt {attempt}/{self.max_attempts}")
                return GeneratedSoap(
                    soap=soap,
                    tokens_in=result.tokens_in,
                    tokens_out=result.tokens_out,
                    attempts=attempt,
                    model=self.processor.model_id,
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    f"SOAP generation failed (attempt {attempt}/{self.max_attempts}): {type(e).__name__}"
                )

                if attempt < self.max_attempts:
                    wait_time = self._delay_after(attempt)
                    logger.info(f"Retrying in {wait_time} seconds...")
                    await self.sleep(wait_time)

        logger.error(f"SOAP generation gave up after {self.max_attempts} attempts")
        raise GenerationFailure(
            getattr(last_error, "user_message", None),
            cause=last_error,
            attempts=self.max_attempts,
        )
