import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..exceptions import GenerationFailure
from ..metrics import estimate_token_count


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int
    completion_tokens: int


@dataclass(frozen=True)
class GenerationSuccess:
    """The provider answered with a decodable JSON payload."""

    payload: Any
    usage: Optional[TokenUsage] = None


@dataclass(frozen=True)
class MalformedOutput:
    """The provider answered, but the answer is not usable JSON."""

    reason: str
    raw: Optional[str] = None


@dataclass(frozen=True)
class TransportError:
    """The call itself failed (network, timeout, HTTP error status)."""

    error: BaseException


ProviderResponse = Union[GenerationSuccess, MalformedOutput, TransportError]


@dataclass(frozen=True)
class GenerationResult:
    soap_candidate: Any
    tokens_in: int
    tokens_out: int


class BaseSOAPProcessor(ABC):
    """
    One-shot SOAP generation against a chat model.

    Subclasses only implement call_provider. generate turns the provider
    response into a GenerationResult or raises GenerationFailure. There is no
    retry at this level.
    """

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier stored with every note, e.g. "azure:gpt-4o-mini-eu"."""

    @abstractmethod
    async def call_provider(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> ProviderResponse:
        """
        Send one request to the provider.

        Must not raise for provider-side problems; those are reported as
        MalformedOutput or TransportError.
        """

    async def generate(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> GenerationResult:
        """
        Generate an (unvalidated) SOAP candidate.

        Args:
            system_prompt: System message
            user_prompt: User message with the cleaned transcript
            max_tokens: Upper bound on generated tokens

        Returns:
            GenerationResult with the decoded candidate and token usage. When
            the provider does not report usage, both counts are estimated from
            the text lengths.

        Raises:
            GenerationFailure: On transport errors or malformed output
        """
        response = await self.call_provider(system_prompt, user_prompt, max_tokens)

        if isinstance(response, TransportError):
            raise GenerationFailure(cause=response.error)

        if isinstance(response, MalformedOutput):
            raise GenerationFailure(
                "La réponse du modèle n'est pas un JSON valide.",
                cause=ValueError(response.reason),
            )

        if response.usage is not None:
            tokens_in = response.usage.prompt_tokens
            tokens_out = response.usage.completion_tokens
        else:
            tokens_in = estimate_token_count(system_prompt + user_prompt)
            tokens_out = estimate_token_count(json.dumps(response.payload, ensure_ascii=False))

        return GenerationResult(
            soap_candidate=response.payload,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
        )


def decode_payload(content: Optional[str]) -> ProviderResponse:
    """Decode a model message into GenerationSuccess or MalformedOutput (usage is added by the caller)."""
    if not isinstance(content, str) or not content:
        return MalformedOutput(reason="empty content")
    try:
        payload: Dict[str, Any] = json.loads(content)
    except json.JSONDecodeError as e:
        return MalformedOutput(reason=f"invalid JSON: {e.msg}", raw=content)
    return GenerationSuccess(payload=payload)
