from .base import (
    BaseSOAPProcessor,
    GenerationResult,
    GenerationSuccess,
    MalformedOutput,
    ProviderResponse,
    TokenUsage,
    TransportError,
)
from .factory import get_soap_processor, initialize_soap_processor

__all__ = [
    "BaseSOAPProcessor",
    "GenerationResult",
    "GenerationSuccess",
    "MalformedOutput",
    "ProviderResponse",
    "TokenUsage",
    "TransportError",
    "get_soap_processor",
    "initialize_soap_processor",
]
