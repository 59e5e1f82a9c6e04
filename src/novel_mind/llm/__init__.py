"""LLM utilities and configuration for the novel analysis application."""

from . import utils
from .config import LLMConfig
from .exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
    LLMTokenLimitError,
    LLMValidationError,
)
from .factory import create_chat_model

__all__ = [
    "LLMConfig",
    "LLMError",
    "LLMAuthenticationError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMServerError",
    "LLMTokenLimitError",
    "LLMValidationError",
    "LLMResponseError",
    "utils",
    "create_chat_model",
]
