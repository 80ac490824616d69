"""Error taxonomy for the recipe RAG service.

Provider SDK exceptions are translated into these types at the provider
boundary, so the retry orchestrator and the degradation paths only ever
reason about this hierarchy.
"""

from typing import Optional


class ChefRAGError(Exception):
    """Base class for all service errors."""


class ConfigurationAbsentError(ChefRAGError):
    """A required credential or connection string is missing."""


class InvalidRequestError(ChefRAGError, ValueError):
    """Caller supplied an invalid recipe or chat request."""


class ProviderError(ChefRAGError):
    """Generic failure reported by an embedding or LLM provider."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class RateLimitError(ProviderError):
    """Provider rejected the call because of request rate limits."""


class QuotaExceededError(RateLimitError):
    """Provider quota is exhausted (billing or daily limits)."""


class ProviderNetworkError(ProviderError):
    """Connection to the provider failed or was reset."""


class MalformedResponseError(ProviderError):
    """Provider returned output that does not match the expected schema."""


class LLMTimeoutError(ChefRAGError):
    """An LLM call did not finish within the configured timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Request timeout after {timeout:g}s")
        self.timeout = timeout


class GenerationFailedError(ChefRAGError):
    """Recipe generation failed after exhausting every attempt."""

    def __init__(self, provider: str, attempts: int, last_error_kind: str, hint: str, last_error: Exception) -> None:
        super().__init__(
            f"Recipe generation with provider '{provider}' failed after {attempts} "
            f"attempt{'s' if attempts != 1 else ''} ({last_error_kind}: {last_error}). {hint}"
        )
        self.provider = provider
        self.attempts = attempts
        self.last_error_kind = last_error_kind
        self.hint = hint
        self.last_error = last_error


class StoreUnavailableError(ChefRAGError):
    """Vector store was never initialized (no URI or connection failure)."""

    def __init__(self, message: str = "Vector store not available. Configure VECTOR_STORE_URI.") -> None:
        super().__init__(message)
