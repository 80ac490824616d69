"""LLM invocation orchestrator: timeout, validation, retry with backoff.

generate_recipe() runs an explicit attempt state machine:

    ATTEMPTING -> BACKOFF_WAIT -> ATTEMPTING -> ... -> SUCCEEDED | EXHAUSTED

Error classification (classify_error / should_retry) and delay calculation
(compute_backoff_delay) are pure functions so they can be tested apart
from the loop.
"""

import asyncio
import random
import time
from enum import Enum
from typing import Any, Awaitable, Optional, TypeVar

from pydantic import ValidationError

from chef_rag.models.models import Recipe, RecipeGenerationResult
from chef_rag.providers.base import LLMProvider
from chef_rag.utils.config import Config, config
from chef_rag.utils.errors import (
    ConfigurationAbsentError,
    GenerationFailedError,
    LLMTimeoutError,
    MalformedResponseError,
    ProviderNetworkError,
    RateLimitError,
)
from chef_rag.utils.logger import logger

BASE_DELAY_MS = 1000
MAX_BASE_DELAY_MS = 5000
MAX_JITTER_MS = 500
# Extra wait after a malformed response, on top of the regular backoff
MALFORMED_EXTRA_DELAY_MS = 1000

T = TypeVar("T")


class ErrorKind(str, Enum):
    MALFORMED = "malformed"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class AttemptState(Enum):
    ATTEMPTING = "attempting"
    BACKOFF_WAIT = "backoff_wait"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


FAILURE_HINTS: dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMIT: (
        "The provider's rate limit or quota is exhausted. Wait a moment or switch provider "
        "(LLM_PROVIDER=gemini has a free tier)."
    ),
    ErrorKind.TIMEOUT: "The model took too long. Raise REQUEST_TIMEOUT or simplify the request.",
    ErrorKind.NETWORK: "Could not reach the provider. Check network connectivity and try again.",
    ErrorKind.MALFORMED: (
        "The model kept returning an incomplete recipe. Try again or simplify the dish name/categories."
    ),
    ErrorKind.UNKNOWN: "Check the provider API key and the service logs for details.",
}

_MESSAGE_PATTERNS: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.TIMEOUT, ("timeout", "timed out")),
    (ErrorKind.MALFORMED, ("parts", "malformed", "json")),
    (ErrorKind.RATE_LIMIT, ("rate limit", "429", "quota", "resource_exhausted")),
    (ErrorKind.NETWORK, ("network", "econnreset", "connection", "fetch failed")),
)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to its retry classification."""
    if isinstance(exc, (LLMTimeoutError, asyncio.TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, MalformedResponseError):
        return ErrorKind.MALFORMED
    if isinstance(exc, RateLimitError):
        return ErrorKind.RATE_LIMIT
    if isinstance(exc, ProviderNetworkError):
        return ErrorKind.NETWORK

    message = str(exc).lower()
    for kind, patterns in _MESSAGE_PATTERNS:
        if any(pattern in message for pattern in patterns):
            return kind
    return ErrorKind.UNKNOWN


def should_retry(kind: ErrorKind) -> bool:
    """Timeouts are terminal; every other failure is retried."""
    return kind is not ErrorKind.TIMEOUT


def compute_backoff_delay(attempt: int, jitter_ms: float = 0.0) -> float:
    """Delay in ms after a failed attempt (1-based): min(1000 * 2^(n-1), 5000) + jitter."""
    return min(BASE_DELAY_MS * 2 ** (attempt - 1), MAX_BASE_DELAY_MS) + jitter_ms


def _discard_outcome(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


async def race_with_timeout(coro: Awaitable[T], timeout: float) -> T:
    """Await coro, giving up after timeout seconds.

    The provider call is not cancelled on timeout: it keeps running in the
    background and whatever it eventually returns or raises is discarded.

    Raises:
        LLMTimeoutError: The timer won the race.
    """
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError as e:
        task.add_done_callback(_discard_outcome)
        raise LLMTimeoutError(timeout) from e


def validate_recipe_payload(payload: Any, provider: str = "") -> Recipe:
    """Check a provider result is a recipe with dish name, ingredients and steps.

    Raises:
        MalformedResponseError: Missing object or mandatory fields (retryable).
    """
    if payload is None:
        raise MalformedResponseError("Provider returned an empty response", provider=provider)
    if isinstance(payload, Recipe):
        recipe = payload
    elif isinstance(payload, dict):
        try:
            recipe = Recipe.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(f"Recipe missing mandatory fields: {e.error_count()} error(s)", provider=provider) from e
    else:
        raise MalformedResponseError(f"Provider returned {type(payload).__name__}, expected an object", provider=provider)

    if not recipe.dish_name or not recipe.ingredients or not recipe.steps:
        raise MalformedResponseError("Recipe missing dish name, ingredients or steps", provider=provider)
    return recipe


class LLMService:
    """Calls the configured providers for recipes (with retries) and chat."""

    def __init__(
        self,
        recipe_provider: LLMProvider,
        chat_provider: Optional[LLMProvider] = None,
        settings: Optional[Config] = None,
    ) -> None:
        self.recipe_provider = recipe_provider
        self.chat_provider = chat_provider or recipe_provider
        self.settings = settings or config

    @property
    def provider_name(self) -> str:
        return self.recipe_provider.name

    async def _attempt(self, prompt: str, timeout: float) -> Recipe:
        payload = await race_with_timeout(self.recipe_provider.generate_structured(prompt, Recipe), timeout)
        return validate_recipe_payload(payload, self.provider_name)

    async def generate_recipe(
        self,
        prompt: str,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
    ) -> RecipeGenerationResult:
        """Generate a validated recipe.

        Args:
            prompt: Full recipe prompt (instructions + RAG context).
            timeout: Per-attempt timeout in seconds. Default: REQUEST_TIMEOUT.
            retries: Retries after the first attempt. Default: LLM_RETRIES.

        Returns:
            RecipeGenerationResult whose duration (ms) is measured from the
            first attempt, so it includes backoff waits.

        Raises:
            GenerationFailedError: Attempts exhausted, or a timeout occurred.
            ConfigurationAbsentError: Provider has no credentials.
        """
        timeout = timeout if timeout is not None else self.settings.REQUEST_TIMEOUT
        retries = retries if retries is not None else self.settings.LLM_RETRIES
        max_attempts = retries + 1
        provider = self.provider_name

        start = time.monotonic()
        attempt = 1
        state = AttemptState.ATTEMPTING
        recipe: Optional[Recipe] = None
        last_error: Optional[Exception] = None
        last_kind = ErrorKind.UNKNOWN

        while state not in (AttemptState.SUCCEEDED, AttemptState.EXHAUSTED):
            if state is AttemptState.ATTEMPTING:
                try:
                    logger.debug(f"LLM attempt {attempt}/{max_attempts}", extra={"provider": provider, "attempt": attempt})
                    recipe = await self._attempt(prompt, timeout)
                    state = AttemptState.SUCCEEDED
                except ConfigurationAbsentError:
                    raise
                except Exception as e:
                    last_error = e
                    last_kind = classify_error(e)
                    logger.warning(
                        f"LLM attempt {attempt}/{max_attempts} failed: {e}",
                        extra={"provider": provider, "attempt": attempt, "error_kind": last_kind.value},
                    )
                    if not should_retry(last_kind) or attempt >= max_attempts:
                        state = AttemptState.EXHAUSTED
                    else:
                        state = AttemptState.BACKOFF_WAIT

            elif state is AttemptState.BACKOFF_WAIT:
                delay_ms = compute_backoff_delay(attempt, random.uniform(0, MAX_JITTER_MS))
                if last_kind is ErrorKind.MALFORMED:
                    delay_ms += MALFORMED_EXTRA_DELAY_MS
                logger.info(f"Retrying in {delay_ms:.0f}ms", extra={"provider": provider, "attempt": attempt})
                await asyncio.sleep(delay_ms / 1000)
                attempt += 1
                state = AttemptState.ATTEMPTING

        if state is AttemptState.SUCCEEDED and recipe is not None:
            duration = int((time.monotonic() - start) * 1000)
            logger.info(
                "✅ Recipe generated",
                extra={"dish_name": recipe.dish_name, "duration_ms": duration, "provider": provider, "attempt": attempt},
            )
            return RecipeGenerationResult(result=recipe, duration=duration, attempts=attempt, provider=provider)

        error = GenerationFailedError(
            provider=provider,
            attempts=attempt,
            last_error_kind=last_kind.value,
            hint=FAILURE_HINTS[last_kind],
            last_error=last_error,
        )
        logger.error(str(error), extra={"provider": provider, "error_kind": last_kind.value})
        raise error from last_error

    async def generate_chat(self, prompt: str, timeout: Optional[float] = None) -> str:
        """Single free-text chat completion (no retries).

        Raises:
            LLMTimeoutError: Call exceeded the timeout.
            ProviderError: Provider failure.
        """
        timeout = timeout if timeout is not None else self.settings.REQUEST_TIMEOUT
        return await race_with_timeout(self.chat_provider.generate_chat(prompt), timeout)
