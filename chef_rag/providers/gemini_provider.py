"""Gemini backend (google-genai SDK): "fast/free" provider variant.

The SDK client is synchronous, so every call runs in a worker thread via
asyncio.to_thread. Clients are created lazily so that a provider without
credentials can be constructed.
"""

import asyncio
from typing import Optional, Type

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from chef_rag.providers.base import EmbeddingProvider, LLMProvider, SchemaT, parse_structured_output
from chef_rag.utils.errors import (
    ProviderError,
    ProviderNetworkError,
    QuotaExceededError,
    RateLimitError,
)
from chef_rag.utils.logger import logger

PROVIDER_NAME = "gemini"


def translate_gemini_error(exc: Exception) -> Exception:
    """Map a google-genai / transport exception onto the service taxonomy."""
    if isinstance(exc, genai_errors.APIError):
        message = str(exc)
        if exc.code == 429 or "RESOURCE_EXHAUSTED" in message:
            if "quota" in message.lower():
                return QuotaExceededError(message, provider=PROVIDER_NAME)
            return RateLimitError(message, provider=PROVIDER_NAME)
        return ProviderError(message, provider=PROVIDER_NAME)
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return ProviderNetworkError(str(exc) or exc.__class__.__name__, provider=PROVIDER_NAME)
    return ProviderError(str(exc) or exc.__class__.__name__, provider=PROVIDER_NAME)


class _GeminiClientMixin:
    api_key: str
    _client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client


class GeminiEmbeddingProvider(_GeminiClientMixin, EmbeddingProvider):
    """Embeddings via Gemini embed_content."""

    name = PROVIDER_NAME

    async def embed(self, text: str) -> list[float]:
        self._require_credentials()
        try:
            result = await asyncio.to_thread(
                self._get_client().models.embed_content,
                model=self.model,
                contents=text,
            )
        except Exception as e:
            raise translate_gemini_error(e) from e
        if not result.embeddings or not result.embeddings[0].values:
            raise ProviderError("Gemini returned no embedding", provider=PROVIDER_NAME)
        return list(result.embeddings[0].values)


class GeminiProvider(_GeminiClientMixin, LLMProvider):
    """Gemini chat and structured generation."""

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
        logger.info(f"Gemini configured: recipe={recipe_model}, chat={chat_model}")

    async def generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        self._require_credentials()
        try:
            response = await asyncio.to_thread(
                self._get_client().models.generate_content,
                model=self.recipe_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                    top_p=0.95,
                    top_k=40,
                    response_mime_type="application/json",
                    response_schema=schema,
                ),
            )
        except Exception as e:
            raise translate_gemini_error(e) from e

        if isinstance(response.parsed, schema):
            return response.parsed
        return parse_structured_output(response.text, schema, PROVIDER_NAME)

    async def generate_chat(self, prompt: str) -> str:
        self._require_credentials()
        try:
            response = await asyncio.to_thread(
                self._get_client().models.generate_content,
                model=self.chat_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.chat_temperature,
                    max_output_tokens=self.chat_max_output_tokens,
                ),
            )
        except Exception as e:
            raise translate_gemini_error(e) from e
        return response.text or ""
