"""Utility functions for LLM operations."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import anthropic
import httpx
import openai
from langchain_core.utils.json import parse_json_markdown

from novel_mind.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
    LLMTokenLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONNECTION_ERRORS = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    httpx.TransportError,
    TimeoutError,
)
_STATUS_ERRORS = (openai.APIStatusError, anthropic.APIStatusError)


def _status_code(error: Exception) -> int | None:
    if isinstance(error, _STATUS_ERRORS):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def classify_provider_error(error: Exception) -> LLMError:
    """
    Map an exception raised by a provider SDK onto the LLMError hierarchy.

    Classification uses exception types and HTTP status codes only.

    Args:
        error: Exception raised while calling the provider

    Returns:
        An LLMError whose ``transient`` flag tells whether retrying may help
    """
    if isinstance(error, LLMError):
        return error

    if isinstance(error, _CONNECTION_ERRORS):
        return LLMConnectionError(f"Connection to provider failed: {error}")

    status = _status_code(error)
    if status is None:
        return LLMError(f"Provider call failed: {error}")
    if status == 429:
        return LLMRateLimitError(f"Rate limit exceeded: {error}")
    if status == 408:
        return LLMConnectionError(f"Provider request timed out: {error}")
    if status >= 500:
        # Includes 529 "overloaded"
        return LLMServerError(f"Provider server error ({status}): {error}")
    if status in (401, 403):
        return LLMAuthenticationError(f"Provider rejected credentials: {error}")
    if status == 413:
        return LLMTokenLimitError(f"Request too large: {error}")
    return LLMError(f"Provider request failed ({status}): {error}")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 5,
    base_delay: float = 2.0,
    description: str = "LLM call",
) -> T:
    """
    Run an async operation, retrying transient LLM errors with exponential backoff.

    The wait doubles after every failed attempt (base_delay, 2x, 4x, ...).
    Non-transient errors are raised immediately.

    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Total number of attempts
        base_delay: Wait before the second attempt, in seconds
        description: Label used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        LLMError: The last error once attempts are exhausted, or the first
            non-transient error
    """
    for attempt in range(max_attempts):
        try:
            return await operation()
        except LLMError as e:
            if not e.transient or attempt == max_attempts - 1:
                raise
            wait = base_delay * (2**attempt)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs... (%s)",
                description,
                attempt + 1,
                max_attempts,
                wait,
                e,
            )
            await asyncio.sleep(wait)
    raise LLMError(f"{description} was not attempted")


def message_text(response: Any) -> str:
    """Extract plain text from a chat model response."""
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # Anthropic style content blocks
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        content = "".join(parts)
    return content or ""


def parse_json_response(text: str) -> Any:
    """
    Parse a JSON document out of a model response (bare or fenced).

    Raises:
        LLMResponseError: If the text is empty or not valid JSON
    """
    if not text or not text.strip():
        raise LLMResponseError("Empty response from LLM")
    try:
        return parse_json_markdown(text, parser=json.loads)
    except (ValueError, TypeError) as e:
        raise LLMResponseError(f"Response is not valid JSON: {e}") from e


def repair_truncated_array(text: str) -> str | None:
    """
    Close a JSON array of objects that was cut off mid-way.

    Keeps everything from the first "[" to the last "}" and appends "]".
    Returns None when the text has no such span.
    """
    start = text.find("[")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return text[start : end + 1] + "]"


def parse_json_array_leniently(text: str) -> list[Any]:
    """
    Parse a JSON array response, repairing truncated output when needed.

    A top-level object wrapping a single list (e.g. {"outlines": [...]}) is
    unwrapped.

    Raises:
        LLMResponseError: If no array can be recovered
    """
    try:
        parsed = parse_json_response(text)
    except LLMResponseError:
        repaired = repair_truncated_array(text or "")
        if repaired is None:
            raise
        try:
            parsed = json.loads(repaired)
        except ValueError as e:
            raise LLMResponseError(f"Could not repair array response: {e}") from e
        logger.warning("Recovered truncated array response")

    if isinstance(parsed, dict):
        lists = [value for value in parsed.values() if isinstance(value, list)]
        if len(lists) == 1:
            parsed = lists[0]
    if not isinstance(parsed, list):
        raise LLMResponseError(f"Expected a JSON array, got {type(parsed).__name__}")
    return parsed

