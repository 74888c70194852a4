"""
Model selection and agent plumbing over pydantic-ai.

Upstream failures are translated into Rubrica errors here so the pipelines
only ever see the structured hierarchy.
"""

from types import NoneType
from typing import Any, Sequence

from openai import AsyncAzureOpenAI
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models.anthropic import AnthropicModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.anthropic import AnthropicProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings
from pydantic_ai.usage import UsageLimits

from rubrica.errors import (
    AIResponseInvalidError,
    AIUpstreamQuotaExceededError,
    AIUpstreamRateLimitedError,
    ProcessingFailedError,
)
from rubrica.logging import get_logger
from rubrica.settings import RubricaSettings, get_settings

logger = get_logger("ai")

DEFAULT_MODEL_NAMES = {
    "anthropic": "claude-3-5-sonnet-20241022",
    "openai": "gpt-4o",
    "openrouter": "openai/gpt-4o",
}


def _get_model_anthropic(
    model_name: str | None = None,
    anthropic_api_key: str | None = None,
    settings: RubricaSettings | None = None,
) -> AnthropicModel:
    """Create Anthropic model instance."""
    settings = settings or get_settings()
    anthropic_api_key = anthropic_api_key or settings.anthropic_api_key
    model_name = model_name or DEFAULT_MODEL_NAMES["anthropic"]

    assert anthropic_api_key, "ANTHROPIC_API_KEY is not set"

    provider = AnthropicProvider(api_key=anthropic_api_key)
    return AnthropicModel(model_name=model_name, provider=provider)


def _get_model_ollama(
    model_name: str | None = None,
    ollama_url: str | None = None,
    settings: RubricaSettings | None = None,
) -> OpenAIChatModel:
    """Create Ollama model instance (OpenAI-compatible endpoint)."""
    settings = settings or get_settings()
    ollama_url = ollama_url or settings.ollama_url

    assert ollama_url, "OLLAMA_URL is not set"
    assert model_name, "Model name is not set"

    provider = OpenAIProvider(base_url=ollama_url)
    return OpenAIChatModel(model_name=model_name, provider=provider)


def _get_model_openai(
    model_name: str | None = None,
    openai_api_key: str | None = None,
    settings: RubricaSettings | None = None,
) -> OpenAIChatModel:
    """Create OpenAI model instance."""
    settings = settings or get_settings()
    openai_api_key = openai_api_key or settings.openai_api_key
    model_name = model_name or DEFAULT_MODEL_NAMES["openai"]

    assert openai_api_key, "OPENAI_API_KEY is not set"

    provider = OpenAIProvider(api_key=openai_api_key, base_url=settings.openai_base_url)
    return OpenAIChatModel(model_name=model_name, provider=provider)


def _get_model_openai_azure(
    model_name: str | None = None,
    azure_openai_api_key: str | None = None,
    azure_openai_endpoint: str | None = None,
    azure_openai_api_version: str | None = None,
    settings: RubricaSettings | None = None,
) -> OpenAIChatModel:
    """Create Azure OpenAI model instance."""
    settings = settings or get_settings()
    azure_openai_api_key = azure_openai_api_key or settings.azure_openai_api_key
    azure_openai_endpoint = azure_openai_endpoint or settings.azure_openai_endpoint
    azure_openai_api_version = azure_openai_api_version or settings.azure_openai_api_version

    assert azure_openai_endpoint, "AZURE_OPENAI_ENDPOINT is not set"
    assert azure_openai_api_key, "AZURE_OPENAI_API_KEY is not set"
    assert azure_openai_api_version, "AZURE_OPENAI_API_VERSION is not set"
    assert model_name, "Model name is not set"

    client = AsyncAzureOpenAI(
        azure_endpoint=azure_openai_endpoint,
        api_version=azure_openai_api_version,
        api_key=azure_openai_api_key,
    )
    return OpenAIChatModel(model_name=model_name, provider=OpenAIProvider(openai_client=client))


def _get_model_open_router(
    model_name: str | None = None,
    openrouter_api_url: str | None = None,
    openrouter_api_key: str | None = None,
    settings: RubricaSettings | None = None,
) -> OpenAIChatModel:
    """Create OpenRouter model instance."""
    settings = settings or get_settings()
    model_name = model_name or DEFAULT_MODEL_NAMES["openrouter"]
    openrouter_api_url = openrouter_api_url or settings.openrouter_api_url
    openrouter_api_key = openrouter_api_key or settings.openrouter_api_key

    assert openrouter_api_url, "OPENROUTER_API_URL is not set"
    assert openrouter_api_key, "OPENROUTER_API_KEY is not set"

    provider = OpenAIProvider(base_url=openrouter_api_url, api_key=openrouter_api_key)
    return OpenAIChatModel(model_name, provider=provider)


def get_model(
    model_family: str | None = None,
    model_name: str | None = None,
    settings: RubricaSettings | None = None,
    **kwargs: Any,
) -> AnthropicModel | OpenAIChatModel:
    """Create and return appropriate model instance based on specified family and name."""
    settings = settings or get_settings()
    model_family = model_family or settings.model_family
    model_name = model_name or settings.model_name

    assert (
        model_family is not None and model_family != ""
    ), f"Model family '{model_family}' is not set"

    match model_family:
        case "anthropic":
            return _get_model_anthropic(model_name=model_name, settings=settings, **kwargs)
        case "azure":
            return _get_model_openai_azure(model_name=model_name, settings=settings, **kwargs)
        case "ollama":
            return _get_model_ollama(model_name=model_name, settings=settings, **kwargs)
        case "openai":
            return _get_model_openai(model_name=model_name, settings=settings, **kwargs)
        case "openrouter":
            return _get_model_open_router(model_name=model_name, settings=settings, **kwargs)
        case _:
            raise ValueError(f"Model family '{model_family}' not supported")


def get_agent(
    model: AnthropicModel | OpenAIChatModel | None = None,
    *,
    instructions: str | None = None,
    system_prompt: str | tuple[str, ...] = (),
    model_settings: ModelSettings | None = None,
    output_type: Any = str,
    deps_type: type = NoneType,
    retries: int = 1,
    settings: RubricaSettings | None = None,
) -> Agent:
    """Get a PydanticAI agent.

    With a pydantic ``output_type`` the model answers through a tool call whose
    arguments schema is that model's JSON schema.
    """
    settings = settings or get_settings()

    if model_settings is None:
        model_settings = ModelSettings(timeout=settings.model_timeout)
    if model is None:
        model = get_model(settings=settings)

    return Agent(
        model=model,
        output_type=output_type,
        instructions=instructions,
        system_prompt=system_prompt,
        deps_type=deps_type,
        model_settings=model_settings,
        retries=retries,
    )


async def run_agent(
    agent: Agent,
    prompt: str | Sequence[Any],
    usage_limits: UsageLimits | None = None,
) -> tuple[Any, list[Any]]:
    """Run the agent once and return ``(output, nodes)``."""
    nodes: list[Any] = []
    try:
        async with agent.iter(prompt, usage_limits=usage_limits) as agent_run:
            async for node in agent_run:
                nodes.append(node)
            result = agent_run.result
    except ModelHTTPError as ex:
        logger.error("model request failed: status=%s model=%s", ex.status_code, ex.model_name)
        if ex.status_code == 429:
            raise AIUpstreamRateLimitedError(f"upstream rate limited ({ex.model_name})") from ex
        if ex.status_code == 402:
            raise AIUpstreamQuotaExceededError(f"upstream quota exhausted ({ex.model_name})") from ex
        raise ProcessingFailedError(f"model request failed with status {ex.status_code}") from ex
    except UnexpectedModelBehavior as ex:
        logger.error("model reply rejected: %s", ex)
        raise AIResponseInvalidError(f"model reply did not match the schema: {ex}") from ex
    return result.output if result else None, nodes
