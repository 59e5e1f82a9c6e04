"""Chat model construction for the supported providers."""

import logging

from novel_mind.llm.config import LLMConfig
from novel_mind.llm.exceptions import LLMConnectionError, LLMValidationError

logger = logging.getLogger(__name__)

ANTHROPIC_DEFAULT_MAX_TOKENS = 4096


def _build_openai(config: LLMConfig, json_mode: bool):
    from langchain_openai import ChatOpenAI  # noqa: PLC0415

    extra = dict(config.provider_kwargs)
    if json_mode:
        extra["model_kwargs"] = {"response_format": {"type": "json_object"}}

    return ChatOpenAI(
        model=config.model_name,
        api_key=config.api_key,
        base_url=config.api_base,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout,
        max_retries=0,
        **extra,
    )


def _build_anthropic(config: LLMConfig, json_mode: bool):
    # Anthropic has no JSON response mode; the prompt asks for JSON instead
    from langchain_anthropic import ChatAnthropic  # noqa: PLC0415

    extra = dict(config.provider_kwargs)
    if config.api_base:
        extra["base_url"] = config.api_base

    return ChatAnthropic(
        model=config.model_name,
        api_key=config.api_key,
        temperature=config.temperature,
        max_tokens=config.max_tokens or ANTHROPIC_DEFAULT_MAX_TOKENS,
        timeout=config.timeout,
        max_retries=0,
        **extra,
    )


def _build_gemini(config: LLMConfig, json_mode: bool):
    from langchain_google_genai import ChatGoogleGenerativeAI  # noqa: PLC0415

    extra = dict(config.provider_kwargs)
    if json_mode:
        extra["response_mime_type"] = "application/json"
    if config.api_base:
        extra["client_options"] = {"api_endpoint": config.api_base}

    return ChatGoogleGenerativeAI(
        model=config.model_name,
        google_api_key=config.api_key,
        temperature=config.temperature,
        max_output_tokens=config.max_tokens,
        timeout=config.timeout,
        max_retries=0,
        **extra,
    )


_BUILDERS = {
    "openai": _build_openai,
    "anthropic": _build_anthropic,
    "gemini": _build_gemini,
}


def create_chat_model(config: LLMConfig | None = None, json_mode: bool = False):
    """
    Create a LangChain chat model for the configured provider.

    SDK-level retries are disabled; transient failures are retried by the
    analysis provider so backoff is applied in one place.

    Args:
        config: LLM configuration. If None, loads from environment.
        json_mode: Request JSON object output where the provider supports it

    Returns:
        ChatOpenAI, ChatAnthropic or ChatGoogleGenerativeAI instance

    Raises:
        LLMValidationError: If the configuration is invalid
        LLMConnectionError: If the provider package is missing or the model
            cannot be created (not transient)
    """
    config = config or LLMConfig.from_environment()
    try:
        config.validate()
    except ValueError as e:
        raise LLMValidationError(str(e)) from e

    builder = _BUILDERS.get(config.provider)
    if builder is None:
        raise LLMValidationError(f"Unsupported provider: {config.provider}")

    try:
        model = builder(config, json_mode)
    except ImportError as e:
        raise LLMConnectionError(
            f"Missing dependency for {config.provider}: {e}", transient=False
        ) from e
    except Exception as e:
        raise LLMConnectionError(
            f"Failed to create {config.provider} chat model: {e}", transient=False
        ) from e

    logger.debug(f"Created {config.provider} chat model {config.model_name}")
    return model
