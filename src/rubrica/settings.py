# src/rubrica/settings.py
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class RubricaSettings(BaseSettings):
    """
    Centralized configuration for Rubrica.

    Convention:
      - All Rubrica-specific vars use the RUBRICA_ prefix.
      - We mirror common provider envs (OPENAI_API_KEY, ANTHROPIC_API_KEY, etc.) by
        exporting them via `apply_to_environment()` so provider SDKs and pydantic_ai
        discover them without each pipeline touching env directly.
    """

    model_config = SettingsConfigDict(
        env_prefix="RUBRICA_",
        env_file=".env",
        extra="ignore",
    )

    # General
    log_level: str = "INFO"
    database_url: str = "sqlite:///rubrica.db"
    storage_root: str = "storage"
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Auth
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None

    # Provider creds / endpoints (optional; export to generic envs for SDKs)
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_organization: str | None = None

    anthropic_api_key: str | None = None

    azure_openai_api_key: str | None = None
    azure_openai_endpoint: str | None = None
    azure_openai_api_version: str | None = None

    # Model configuration
    model_timeout: int = 120
    model_family: str | None = None
    model_name: str | None = None
    extraction_model_name: str | None = None
    grading_model_name: str | None = None
    vision_model_name: str | None = None

    # Ollama models
    ollama_url: str | None = None

    # OpenRouter models
    openrouter_api_key: str | None = None
    openrouter_api_url: str = "https://openrouter.ai/api/v1"

    # Storage
    storage_timeout: int = 30

    # Pipeline limits
    rubric_max_file_bytes: int = 5 * MIB
    submission_max_file_bytes: int = 10 * MIB
    rubric_max_text_chars: int = 100_000
    submission_max_text_chars: int = 200_000
    rubric_min_text_chars: int = 20
    submission_min_text_chars: int = 50
    rubric_rate_limit_per_minute: int = 10
    rate_limit_retention_minutes: int = 60


def _set_if_missing(name: str, value: str | None) -> None:
    if value is None:
        return
    os.environ.setdefault(name, value)


def apply_to_environment(settings: RubricaSettings) -> None:
    """
    Export provider-specific variables so downstream libraries (OpenAI, Anthropic, Azure)
    and pydantic_ai can auto-discover credentials.

    We set only if the env var is not already present (user wins).
    """

    # OpenAI
    _set_if_missing("OPENAI_API_KEY", settings.openai_api_key)
    _set_if_missing("OPENAI_BASE_URL", settings.openai_base_url)
    _set_if_missing("OPENAI_ORG", settings.openai_organization)
    _set_if_missing("OPENAI_ORGANIZATION", settings.openai_organization)

    # Anthropic
    _set_if_missing("ANTHROPIC_API_KEY", settings.anthropic_api_key)

    # Azure OpenAI
    _set_if_missing("AZURE_OPENAI_API_KEY", settings.azure_openai_api_key)
    _set_if_missing("AZURE_OPENAI_ENDPOINT", settings.azure_openai_endpoint)
    _set_if_missing("OPENAI_API_VERSION", settings.azure_openai_api_version)

    # Ollama / OpenRouter
    _set_if_missing("OLLAMA_BASE_URL", settings.ollama_url)
    _set_if_missing("OPENROUTER_API_KEY", settings.openrouter_api_key)


@lru_cache(maxsize=1)
def get_settings() -> RubricaSettings:
    """
    Load settings once (env/.env), export provider envs, and cache.
    """
    s = RubricaSettings()
    apply_to_environment(s)
    return s


def reload_settings() -> RubricaSettings:
    """
    Clear cache and reload; useful in tests.
    """
    get_settings.cache_clear()
    return get_settings()
