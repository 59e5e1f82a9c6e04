"""LLM-specific exceptions."""


class LLMError(Exception):
    """Base exception for LLM-related errors.

    ``transient`` marks failures that may succeed when retried (network
    trouble, rate limits, overloaded or failing servers).
    """

    transient: bool = False

    def __init__(self, message: str, transient: bool | None = None):
        super().__init__(message)
        self.message = message
        if transient is not None:
            self.transient = transient


class LLMConnectionError(LLMError):
    """Raised when LLM provider connection fails or times out."""

    transient = True


class LLMRateLimitError(LLMError):
    """Raised when LLM provider rate limits are exceeded."""

    transient = True


class LLMServerError(LLMError):
    """Raised when the provider reports a server-side failure or overload."""

    transient = True


class LLMAuthenticationError(LLMError):
    """Raised when the provider rejects the credentials."""
    pass


class LLMTokenLimitError(LLMError):
    """Raised when token limits are exceeded."""
    pass


class LLMValidationError(LLMError):
    """Raised when input or configuration validation fails."""
    pass


class LLMResponseError(LLMError):
    """Raised when LLM response is invalid or malformed."""
    pass
