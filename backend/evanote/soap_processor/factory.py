from loguru import logger

from .azure_processor import AzureOpenAISOAPProcessor
from .mock_processor import MockSOAPProcessor
from .base import BaseSOAPProcessor
from ..config import Settings, validate_eu_region
from ..exceptions import ConfigurationError


def get_soap_processor(provider: str = "azure", **kwargs) -> BaseSOAPProcessor:
    """
    Factory method to return an instance of a SOAP processor.
    Switching providers later is as simple as adding another branch here.

    Args:
        provider: The provider to use for SOAP processing
        **kwargs: Additional arguments to pass to the processor

    Returns:
        An instance of a BaseSOAPProcessor implementation

    Raises:
        ValueError: If the provider is unknown
    """
    logger.debug(f"Creating SOAP processor with provider: {provider}")

    if provider == "azure":
        return AzureOpenAISOAPProcessor(**kwargs)
    elif provider == "mock":
        return MockSOAPProcessor(**kwargs)
    else:
        raise ValueError(f"Unknown SOAP processor provider: {provider}")


def initialize_soap_processor(settings: Settings) -> BaseSOAPProcessor:
    """
    Build the generation client once, at startup.

    For Azure the endpoint, key, region and deployment are required and the
    region must be in the EU allow-list.

    Raises:
        ConfigurationError: On missing settings, a non-EU region or an unknown provider
    """
    if settings.SOAP_PROVIDER == "azure":
        required = {
            "AZURE_OPENAI_ENDPOINT": settings.AZURE_OPENAI_ENDPOINT,
            "AZURE_OPENAI_API_KEY": settings.AZURE_OPENAI_API_KEY,
            "AZURE_OPENAI_REGION": settings.AZURE_OPENAI_REGION,
            "AZURE_OPENAI_DEPLOYMENT": settings.AZURE_OPENAI_DEPLOYMENT,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                "Configuration Azure OpenAI incomplète.",
                context={"missing": ",".join(missing)},
            )

        region = validate_eu_region(settings.AZURE_OPENAI_REGION)
        logger.info(f"Azure OpenAI configured in region {region}, deployment {settings.AZURE_OPENAI_DEPLOYMENT}")

        return get_soap_processor(
            "azure",
            endpoint=settings.AZURE_OPENAI_ENDPOINT,
            api_key=settings.AZURE_OPENAI_API_KEY,
            deployment=settings.AZURE_OPENAI_DEPLOYMENT,
            api_version=settings.AZURE_OPENAI_API_VERSION,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    if settings.SOAP_PROVIDER == "mock":
        logger.warning("Using mock SOAP processor - notes are not generated by a model")
        return get_soap_processor("mock")

    raise ConfigurationError(
        "Fournisseur de génération SOAP inconnu.",
        context={"provider": settings.SOAP_PROVIDER},
    )
