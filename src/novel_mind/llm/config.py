"""LLM configuration management."""

import os
from dataclasses import dataclass, field
from typing import Any

from novel_mind.data_models.entities import AnalysisSettings

DEFAULT_MODEL_NAME = "gpt-4o"

SUPPORTED_PROVIDERS = ("openai", "anthropic", "gemini")


@dataclass
class LLMConfig:
    """Configuration for LLM providers."""

    # Provider settings
    provider: str = "openai"  # openai (or any compatible endpoint), anthropic, gemini
    model_name: str = DEFAULT_MODEL_NAME
    api_key: str | None = None
    api_base: str | None = None

    # Generation parameters
    temperature: float = 0.3
    max_tokens: int | None = None
    timeout: float | None = None

    # Provider-specific settings
    provider_kwargs: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_environment(cls, provider: str | None = None) -> "LLMConfig":
        """
        Create LLM configuration from environment variables.

        Args:
            provider: Override the provider from environment

        Returns:
            LLMConfig instance
        """
        config = cls()

        # Provider and model
        config.provider = provider or os.getenv("LLM_PROVIDER", "openai")
        config.model_name = os.getenv("LLM_MODEL_NAME", DEFAULT_MODEL_NAME)

        # API settings
        config.api_key = _api_key_for(config.provider)
        config.api_base = os.getenv("LLM_API_BASE")

        # Generation parameters
        if temp := os.getenv("LLM_TEMPERATURE"):
            config.temperature = float(temp)
        if max_tokens := os.getenv("LLM_MAX_TOKENS"):
            config.max_tokens = int(max_tokens)
        if timeout := os.getenv("LLM_TIMEOUT"):
            config.timeout = float(timeout)

        return config

    @classmethod
    def from_settings(cls, settings: AnalysisSettings) -> "LLMConfig":
        """
        Build a configuration from a novel's analysis settings.

        Credentials are always read from the environment; the settings only
        choose provider, model, endpoint and generation limits.
        """
        config = cls.from_environment(provider=settings.provider)
        config.model_name = settings.model_name
        if settings.api_base:
            config.api_base = settings.api_base
        config.temperature = settings.temperature
        config.max_tokens = settings.max_output_tokens
        return config

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported provider: {self.provider}")

        if not self.model_name:
            raise ValueError("Model name must be specified")

        if not self.api_key:
            raise ValueError(f"API key is required for {self.provider} provider")

        if not 0 <= self.temperature <= 2:
            raise ValueError("Temperature must be between 0 and 2")

        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("Max tokens must be positive")


def _api_key_for(provider: str) -> str | None:
    if provider == "anthropic":
        return os.getenv("LLM_API_KEY") or os.getenv("ANTHROPIC_API_KEY")
    if provider == "gemini":
        return os.getenv("LLM_API_KEY") or os.getenv("GOOGLE_API_KEY")
    return os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
