import httpx
from typing import Optional
from loguru import logger

from .base import (
    BaseSOAPProcessor,
    GenerationSuccess,
    MalformedOutput,
    ProviderResponse,
    TokenUsage,
    TransportError,
    decode_payload,
)

# Sent as response_format so the model is constrained to the four SOAP fields.
SOAP_JSON_SCHEMA = {
    "name": "soap_note",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "subjective": {"type": "string"},
            "objective": {"type": "string"},
            "assessment": {"type": "string"},
            "plan": {"type": "string"},
        },
        "required": ["subjective", "objective", "assessment", "plan"],
        "additionalProperties": False,
    },
}


class AzureOpenAISOAPProcessor(BaseSOAPProcessor):
    """
    SOAP generation through the Azure OpenAI chat completions REST API.

    The region is validated before this class is built (see
    initialize_soap_processor); nothing here talks to a non-EU endpoint.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        deployment: str,
        api_version: str = "2024-08-01-preview",
        timeout: float = 60.0,
        temperature: float = 0.2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.deployment = deployment
        self.api_version = api_version
        self.timeout = timeout
        self.temperature = temperature
        self.transport = transport

    @property
    def model_id(self) -> str:
        return f"azure:{self.deployment}"

    @property
    def url(self) -> str:
        return f"{self.endpoint}/openai/deployments/{self.deployment}/chat/completions"

    async def call_provider(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> ProviderResponse:
        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json",
        }
        data = {
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "response_format": {"type": "json_schema", "json_schema": SOAP_JSON_SCHEMA},
        }

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    params={"api-version": self.api_version},
                    json=data,
                    headers=headers,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Azure OpenAI returned HTTP {e.response.status_code} for deployment {self.deployment}")
            return TransportError(error=e)
        except httpx.HTTPError as e:
            logger.error(f"Azure OpenAI request failed: {type(e).__name__}")
            return TransportError(error=e)

        try:
            result = response.json()
        except ValueError:
            return MalformedOutput(reason="response body is not JSON", raw=response.text)

        if not isinstance(result, dict):
            return MalformedOutput(reason="response body is not a JSON object", raw=result)

        choices = result.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return MalformedOutput(reason="no choices in response")

        choice = choices[0]
        if choice.get("finish_reason") == "content_filter":
            return MalformedOutput(reason="response blocked by content filter")

        message = choice.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        decoded = decode_payload(content)
        if not isinstance(decoded, GenerationSuccess):
            return decoded

        usage = result.get("usage")
        token_usage = None
        if isinstance(usage, dict) and "prompt_tokens" in usage and "completion_tokens" in usage:
            token_usage = TokenUsage(
                prompt_tokens=int(usage["prompt_tokens"]),
                completion_tokens=int(usage["completion_tokens"]),
            )

        logger.debug(f"Azure OpenAI answered (finish_reason={choice.get('finish_reason')})")
        return GenerationSuccess(payload=decoded.payload, usage=token_usage)
