"""OpenAI backend: "higher-quality" provider variant.

Structured output uses JSON mode with the Pydantic JSON schema in the
system message; the result is validated locally so both backends share
the same malformed-response semantics.
"""

import json
from typing import Optional, Type

import openai
from openai import AsyncOpenAI

from chef_rag.providers.base import EmbeddingProvider, LLMProvider, SchemaT, parse_structured_output
from chef_rag.utils.errors import (
    MalformedResponseError,
    ProviderError,
    ProviderNetworkError,
    QuotaExceededError,
    RateLimitError,
)
from chef_rag.utils.logger import logger

PROVIDER_NAME = "openai"

STRUCTURED_SYSTEM_PROMPT = (
    "You are Chef AI, a professional recipe writer. "
    "Reply with a single JSON object that conforms to this JSON schema:\n{schema}"
)


def translate_openai_error(exc: Exception) -> Exception:
    """Map an openai SDK exception onto the service taxonomy."""
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, openai.RateLimitError):
        if getattr(exc, "code", None) == "insufficient_quota" or "quota" in message.lower():
            return QuotaExceededError(message, provider=PROVIDER_NAME)
        return RateLimitError(message, provider=PROVIDER_NAME)
    # APITimeoutError is an APIConnectionError subclass
    if isinstance(exc, openai.APIConnectionError):
        return ProviderNetworkError(message, provider=PROVIDER_NAME)
    return ProviderError(message, provider=PROVIDER_NAME)


class _OpenAIClientMixin:
    api_key: str
    _client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            # Retries belong to the orchestrator, not the SDK
            self._client = AsyncOpenAI(api_key=self.api_key, max_retries=0)
        return self._client


class OpenAIEmbeddingProvider(_OpenAIClientMixin, EmbeddingProvider):
    """Embeddings via the OpenAI embeddings endpoint."""

    name = PROVIDER_NAME

    def __init__(self, api_key: str, model: str, dimensions: Optional[int] = None) -> None:
        super().__init__(api_key, model)
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        self._require_credentials()
        kwargs = {"model": self.model, "input": text}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        try:
            response = await self._get_client().embeddings.create(**kwargs)
        except Exception as e:
            raise translate_openai_error(e) from e
        if not response.data:
            raise ProviderError("OpenAI returned no embedding", provider=PROVIDER_NAME)
        return list(response.data[0].embedding)


class OpenAIProvider(_OpenAIClientMixin, LLMProvider):
    """OpenAI chat and structured generation."""

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str,
        recipe_model: str,
        chat_model: str,
        temperature: float = 0.3,
        chat_temperature: float = 0.7,
        max_output_tokens: int = 2048,
        chat_max_output_tokens: int = 1024,
    ) -> None:
        super().__init__(api_key, recipe_model, chat_model)
        self.temperature = temperature
        self.chat_temperature = chat_temperature
        self.max_output_tokens = max_output_tokens
        self.chat_max_output_tokens = chat_max_output_tokens
        logger.info(f"OpenAI configured: recipe={recipe_model}, chat={chat_model}")

    async def generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        self._require_credentials()
        system_prompt = STRUCTURED_SYSTEM_PROMPT.format(
            schema=json.dumps(schema.model_json_schema(by_alias=True), ensure_ascii=False)
        )
        try:
            completion = await self._get_client().chat.completions.create(
                model=self.recipe_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise translate_openai_error(e) from e

        if not completion.choices:
            raise MalformedResponseError("OpenAI returned no choices", provider=PROVIDER_NAME)
        return parse_structured_output(completion.choices[0].message.content, schema, PROVIDER_NAME)

    async def generate_chat(self, prompt: str) -> str:
        self._require_credentials()
        try:
            completion = await self._get_client().chat.completions.create(
                model=self.chat_model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.chat_temperature,
                max_tokens=self.chat_max_output_tokens,
            )
        except Exception as e:
            raise translate_openai_error(e) from e
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""
