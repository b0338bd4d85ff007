"""
Tests for the retry controller around the SOAP processor.
"""
import asyncio
import math

import httpx
import pytest

from evanote.exceptions import GenerationFailure, ValidationError
from evanote.soap_generation import MAX_ATTEMPTS, SoapGenerator
from evanote.soap_processor.base import GenerationSuccess, MalformedOutput, TransportError

from conftest import TRANSCRIPT, VALID_SOAP, ScriptedProcessor, success


def transport_error() -> TransportError:
    return TransportError(error=httpx.ConnectError("connection refused"))


async def test_success_on_first_attempt(recording_sleep):
    processor = ScriptedProcessor(success())
    generator = SoapGenerator(processor, max_output_tokens=512, sleep=recording_sleep)

    generated = await generator.generate_with_retry(TRANSCRIPT)

    assert generated.soap.model_dump() == VALID_SOAP
    assert generated.attempts == 1
    assert generated.tokens_in == 120
    assert generated.tokens_out == 80
    assert generated.model == "azure:gpt-4o-mini-eu"
    assert recording_sleep.delays == []
    assert processor.calls[0][2] == 512


async def test_fail_fail_succeed_sleeps_one_then_two_seconds(recording_sleep):
    processor = ScriptedProcessor(transport_error(), MalformedOutput(reason="truncated"), success())
    generator = SoapGenerator(processor, sleep=recording_sleep)

    generated = await generator.generate_with_retry(TRANSCRIPT)

    assert generated.attempts == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert len(processor.calls) == 3


async def test_gives_up_after_three_attempts(recording_sleep):
    processor = ScriptedProcessor(transport_error())
    generator = SoapGenerator(processor, sleep=recording_sleep)

    with pytest.raises(GenerationFailure) as exc_info:
        await generator.generate_with_retry(TRANSCRIPT)

    assert exc_info.value.attempts == MAX_ATTEMPTS == 3
    assert isinstance(exc_info.value.cause, GenerationFailure)
    assert len(processor.calls) == 3
    # No delay after the final attempt
    assert recording_sleep.delays == [1.0, 2.0]


async def test_schema_violation_is_retried(recording_sleep):
    processor = ScriptedProcessor(success(dict(VALID_SOAP, assessment="")), success())
    generator = SoapGenerator(processor, sleep=recording_sleep)

    generated = await generator.generate_with_retry(TRANSCRIPT)

    assert generated.attempts == 2
    assert recording_sleep.delays == [1.0]


async def test_last_schema_violation_message_is_reported(recording_sleep):
    processor = ScriptedProcessor(success(dict(VALID_SOAP, plan="")))
    generator = SoapGenerator(processor, sleep=recording_sleep)

    with pytest.raises(GenerationFailure) as exc_info:
        await generator.generate_with_retry(TRANSCRIPT)

    assert "Plan" in exc_info.value.user_message


async def test_invalid_input_is_not_retried(recording_sleep):
    processor = ScriptedProcessor(success())
    generator = SoapGenerator(processor, sleep=recording_sleep)

    with pytest.raises(ValidationError):
        await generator.generate_with_retry("äh zu kurz")

    assert processor.calls == []
    assert recording_sleep.delays == []


async def test_prompt_uses_cleaned_text_and_language(recording_sleep):
    processor = ScriptedProcessor(success())
    generator = SoapGenerator(processor, sleep=recording_sleep)

    await generator.generate_with_retry(TRANSCRIPT, language="fr", detail="concise", body_region="Genou")

    system_prompt, user_prompt, _ = processor.calls[0]
    assert "N/D" in system_prompt
    assert "Ähm" not in user_prompt
    assert "der Patient berichtet" in user_prompt
    assert "Région ciblée : Genou" in user_prompt


async def test_cancellation_is_not_swallowed(recording_sleep):
    processor = ScriptedProcessor(asyncio.CancelledError())
    generator = SoapGenerator(processor, sleep=recording_sleep)

    with pytest.raises(asyncio.CancelledError):
        await generator.generate_with_retry(TRANSCRIPT)

    assert len(processor.calls) == 1


async def test_usage_is_estimated_when_provider_reports_none():
    processor = ScriptedProcessor(GenerationSuccess(payload=dict(VALID_SOAP)))

    result = await processor.generate("system", "user prompt", 256)

    assert result.tokens_in == math.ceil(len("systemuser prompt") / 4)
    assert result.tokens_out > 0
