"""Provider interfaces shared by the Gemini and OpenAI backends.

Both backends expose the same capability set, so the rest of the service
only ever holds an LLMProvider / EmbeddingProvider chosen once at startup.
Constructing a provider without credentials never raises; invoking it does.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from chef_rag.utils.errors import ConfigurationAbsentError, MalformedResponseError
from chef_rag.utils.safe import safe_execute_sync

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class EmbeddingProvider(ABC):
    """Converts text to a fixed-length vector. No retries here."""

    name: str = ""

    def __init__(self, api_key: str, model: str) -> None:
        self.api_key = api_key
        self.model = model

    def is_available(self) -> bool:
        """True when credentials are present (no connectivity check)."""
        return bool(self.api_key)

    def _require_credentials(self) -> None:
        if not self.is_available():
            raise ConfigurationAbsentError(f"{self.name} embedding provider has no API key configured")

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            QuotaExceededError: Provider quota exhausted.
            ProviderError: Any other provider failure.
        """


class LLMProvider(ABC):
    """Chat and schema-constrained generation against one LLM backend."""

    name: str = ""

    def __init__(self, api_key: str, recipe_model: str, chat_model: str) -> None:
        self.api_key = api_key
        self.recipe_model = recipe_model
        self.chat_model = chat_model

    def is_available(self) -> bool:
        """True when credentials are present (no connectivity check)."""
        return bool(self.api_key)

    def _require_credentials(self) -> None:
        if not self.is_available():
            raise ConfigurationAbsentError(f"{self.name} LLM provider has no API key configured")

    @abstractmethod
    async def generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        """Generate output validated against a Pydantic schema.

        Raises:
            MalformedResponseError: Output did not parse or validate.
            RateLimitError / QuotaExceededError / ProviderNetworkError / ProviderError.
        """

    @abstractmethod
    async def generate_chat(self, prompt: str) -> str:
        """Generate a free-text reply."""


def parse_structured_output(response_text: str, schema: Type[SchemaT], provider: str) -> SchemaT:
    """Parse model output into a validated schema instance.

    Lenient JSON parsing: tries the raw text first, then extracts the
    outermost {...} block (models occasionally wrap JSON in prose or
    markdown fences).

    Raises:
        MalformedResponseError: No JSON object found, or schema validation failed.
    """
    text = response_text or ""

    def _parse_json_direct() -> Any:
        return json.loads(text)

    def _parse_json_regex() -> Any:
        json_match = re.search(r"\{.*\}", text, re.DOTALL)
        if json_match:
            return json.loads(json_match.group())
        return None

    parsed = safe_execute_sync(_parse_json_direct, "Direct JSON parse", log_level="debug")
    if not isinstance(parsed, dict):
        parsed = safe_execute_sync(_parse_json_regex, "Regex JSON extraction", log_level="debug")

    if not isinstance(parsed, dict):
        raise MalformedResponseError("Response did not contain a JSON object", provider=provider)

    try:
        return schema.model_validate(parsed)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Response failed {schema.__name__} validation: {e.error_count()} error(s)", provider=provider
        ) from e
