"""
Tests for the Azure OpenAI adapter (against httpx.MockTransport), the mock
processor and the processor factory.
"""
import json

import httpx
import pytest
from pydantic import ValidationError as SettingsValidationError

from evanote.config import Settings, validate_eu_region
from evanote.exceptions import ConfigurationError, GenerationFailure
from evanote.prompts import build_prompts
from evanote.schemas import validate_soap
from evanote.soap_processor import MalformedOutput, initialize_soap_processor
from evanote.soap_processor.azure_processor import AzureOpenAISOAPProcessor
from evanote.soap_processor.mock_processor import MockSOAPProcessor

from conftest import VALID_SOAP


def azure_processor(handler) -> AzureOpenAISOAPProcessor:
    return AzureOpenAISOAPProcessor(
        endpoint="https://eva-test.openai.azure.com/",
        api_key="secret-key",
        deployment="gpt-4o-mini-eu",
        api_version="2024-08-01-preview",
        transport=httpx.MockTransport(handler),
    )


def chat_response(content, usage=None, finish_reason="stop") -> httpx.Response:
    body = {"choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}]}
    if usage is not None:
        body["usage"] = usage
    return httpx.Response(200, json=body)


async def test_azure_request_and_usage():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers["api-key"]
        seen["body"] = json.loads(request.content)
        return chat_response(json.dumps(VALID_SOAP), usage={"prompt_tokens": 321, "completion_tokens": 123})

    processor = azure_processor(handler)
    result = await processor.generate("system", "user", 1024)

    assert seen["url"] == (
        "https://eva-test.openai.azure.com/openai/deployments/gpt-4o-mini-eu/chat/completions"
        "?api-version=2024-08-01-preview"
    )
    assert seen["api_key"] == "secret-key"
    assert seen["body"]["max_tokens"] == 1024
    assert seen["body"]["messages"][0] == {"role": "system", "content": "system"}
    assert seen["body"]["response_format"]["type"] == "json_schema"
    assert result.soap_candidate == VALID_SOAP
    assert (result.tokens_in, result.tokens_out) == (321, 123)
    assert processor.model_id == "azure:gpt-4o-mini-eu"


async def test_azure_missing_usage_falls_back_to_estimate():
    processor = azure_processor(lambda request: chat_response(json.dumps(VALID_SOAP)))
    result = await processor.generate("a" * 40, "b" * 40, 1024)
    assert result.tokens_in == 20


async def test_azure_http_error_is_a_generation_failure():
    processor = azure_processor(lambda request: httpx.Response(503, json={"error": "busy"}))
    with pytest.raises(GenerationFailure) as exc_info:
        await processor.generate("system", "user", 1024)
    assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)


async def test_azure_network_error_is_a_generation_failure():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(GenerationFailure) as exc_info:
        await azure_processor(handler).generate("system", "user", 1024)
    assert isinstance(exc_info.value.cause, httpx.ConnectTimeout)


@pytest.mark.parametrize(
    "response",
    [
        chat_response("this is not json"),
        chat_response(None),
        chat_response(json.dumps(VALID_SOAP), finish_reason="content_filter"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, text="<html>gateway</html>"),
    ],
)
async def test_azure_malformed_output(response):
    with pytest.raises(GenerationFailure):
        await azure_processor(lambda request: response).generate("system", "user", 1024)


@pytest.mark.parametrize(
    "body",
    [
        ["choices"],
        "just a string",
        {"choices": "none"},
        {"choices": ["not an object"]},
        {"choices": [{"message": "plain text", "finish_reason": "stop"}]},
        {"choices": [{"message": {"content": {"subjective": "x"}}, "finish_reason": "stop"}]},
    ],
)
async def test_azure_unexpected_body_shapes_are_malformed_output(body):
    processor = azure_processor(lambda request: httpx.Response(200, json=body))
    response = await processor.call_provider("system", "user", 1024)
    assert isinstance(response, MalformedOutput)


async def test_mock_processor_output_passes_validation():
    prompts = build_prompts("de", "Der Patient berichtet über Knieschmerzen rechts.")
    result = await MockSOAPProcessor().generate(prompts.system, prompts.user, 1024)
    note = validate_soap(result.soap_candidate)
    assert note.subjective == "Der Patient berichtet über Knieschmerzen rechts."
    assert note.plan == "N/A"


def azure_settings(**overrides) -> Settings:
    values = {
        "SOAP_PROVIDER": "azure",
        "AZURE_OPENAI_ENDPOINT": "https://eva-test.openai.azure.com",
        "AZURE_OPENAI_API_KEY": "secret-key",
        "AZURE_OPENAI_REGION": "germanywestcentral",
        "AZURE_OPENAI_DEPLOYMENT": "gpt-4o-mini-eu",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_validate_eu_region():
    assert validate_eu_region(" WestEurope ") == "westeurope"
    for region in ("eastus", "", None):
        with pytest.raises(ConfigurationError):
            validate_eu_region(region)


def test_initialize_azure_processor():
    processor = initialize_soap_processor(azure_settings())
    assert isinstance(processor, AzureOpenAISOAPProcessor)
    assert processor.model_id == "azure:gpt-4o-mini-eu"


def test_initialize_rejects_non_eu_region():
    with pytest.raises(ConfigurationError):
        initialize_soap_processor(azure_settings(AZURE_OPENAI_REGION="eastus2"))


def test_initialize_reports_missing_settings():
    with pytest.raises(ConfigurationError) as exc_info:
        initialize_soap_processor(azure_settings(AZURE_OPENAI_API_KEY=None))
    assert exc_info.value.context["missing"] == "AZURE_OPENAI_API_KEY"


def test_initialize_mock_and_unknown_providers():
    assert isinstance(initialize_soap_processor(Settings(_env_file=None, SOAP_PROVIDER="mock")), MockSOAPProcessor)
    with pytest.raises(ConfigurationError):
        initialize_soap_processor(Settings(_env_file=None, SOAP_PROVIDER="openai"))


def test_max_output_tokens_must_be_positive():
    with pytest.raises(SettingsValidationError):
        Settings(_env_file=None, LLM_MAX_OUTPUT_TOKENS=0)
