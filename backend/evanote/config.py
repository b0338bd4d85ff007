from typing import Any, Dict, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache

from .exceptions import ConfigurationError

# Azure regions inside the EU data boundary. Patient data must not leave it.
EU_REGIONS = (
    "westeurope",
    "northeurope",
    "francecentral",
    "germanywestcentral",
    "switzerlandnorth",
    "norwayeast",
    "swedencentral",
    "polandcentral",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database settings
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./evanote.db",
        description="Database connection string"
    )

    # SOAP generation settings
    SOAP_PROVIDER: str = Field(
        default="azure",
        description="Provider for SOAP generation (azure, mock)"
    )
    AZURE_OPENAI_ENDPOINT: Optional[str] = Field(
        default=None,
        description="Azure OpenAI resource endpoint, e.g. https://my-resource.openai.azure.com"
    )
    AZURE_OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="API key for Azure OpenAI"
    )
    AZURE_OPENAI_REGION: Optional[str] = Field(
        default=None,
        description="Azure region of the resource, must be inside the EU"
    )
    AZURE_OPENAI_DEPLOYMENT: str = Field(
        default="gpt-4o-mini-eu",
        description="Deployment name of the chat model"
    )
    AZURE_OPENAI_API_VERSION: str = Field(
        default="2024-08-01-preview",
        description="Azure OpenAI REST API version"
    )
    LLM_MAX_OUTPUT_TOKENS: int = Field(
        default=1024,
        description="Upper bound on generated tokens per request"
    )
    LLM_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="HTTP timeout for one generation request"
    )

    # Transcription service settings
    TRANSCRIPTION_PROVIDER: str = Field(
        default="dummy",
        description="Provider for transcription service (dummy, deepgram)"
    )
    DEEPGRAM_API_KEY: Optional[str] = Field(
        default=None,
        description="API key for Deepgram"
    )
    DEEPGRAM_MODEL: str = Field(
        default="nova-3",
        description="Deepgram model name"
    )
    DEEPGRAM_LANGUAGE: str = Field(
        default="de",
        description="Language hint sent to Deepgram"
    )
    STT_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        description="HTTP timeout for one transcription request"
    )
    STT_MAX_DURATION_SECONDS: int = Field(
        default=3600,
        description="Longest accepted recording"
    )

    # Logging settings
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    LOG_FILE: str = Field(
        default="evanote.log",
        description="Log file path"
    )
    LOG_ROTATION: str = Field(
        default="500 MB",
        description="Log rotation size"
    )

    @field_validator("LLM_MAX_OUTPUT_TOKENS")
    @classmethod
    def _positive_max_tokens(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("LLM_MAX_OUTPUT_TOKENS must be greater than 0")
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def validate_eu_region(region: Optional[str]) -> str:
    """
    Make sure the generation endpoint lives in an EU region.

    Args:
        region: Azure region name, case-insensitive

    Returns:
        The normalised region name

    Raises:
        ConfigurationError: If the region is missing or outside the allow-list
    """
    normalized = (region or "").strip().lower()
    if normalized not in EU_REGIONS:
        raise ConfigurationError(
            "La région Azure OpenAI doit se situer dans l'UE.",
            context={"region": region, "allowed": ",".join(EU_REGIONS)},
        )
    return normalized


def config_summary(settings: "Settings") -> Dict[str, Any]:
    """Settings that are safe to log. Secrets only show up as configured or not."""
    return {
        "database": settings.DATABASE_URL.split("://", 1)[0],
        "soap_provider": settings.SOAP_PROVIDER,
        "azure_endpoint_configured": bool(settings.AZURE_OPENAI_ENDPOINT),
        "azure_api_key_configured": bool(settings.AZURE_OPENAI_API_KEY),
        "azure_region": settings.AZURE_OPENAI_REGION,
        "azure_deployment": settings.AZURE_OPENAI_DEPLOYMENT,
        "azure_api_version": settings.AZURE_OPENAI_API_VERSION,
        "llm_max_output_tokens": settings.LLM_MAX_OUTPUT_TOKENS,
        "transcription_provider": settings.TRANSCRIPTION_PROVIDER,
        "deepgram_api_key_configured": bool(settings.DEEPGRAM_API_KEY),
        "deepgram_model": settings.DEEPGRAM_MODEL,
        "log_level": settings.LOG_LEVEL,
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings, cached for performance.

    Returns:
        Application settings
    """
    return Settings()
