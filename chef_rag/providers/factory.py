"""Provider selection, resolved once at startup from configuration."""

from chef_rag.providers.base import EmbeddingProvider, LLMProvider
from chef_rag.providers.gemini_provider import GeminiEmbeddingProvider, GeminiProvider
from chef_rag.providers.openai_provider import OpenAIEmbeddingProvider, OpenAIProvider
from chef_rag.utils.config import Config


def create_llm_provider(name: str, cfg: Config) -> LLMProvider:
    """Build the LLM provider for a provider name ("gemini" or "openai").

    Raises:
        ValueError: Unknown provider name.
    """
    if name == "gemini":
        return GeminiProvider(
            api_key=cfg.GOOGLE_API_KEY,
            recipe_model=cfg.GEMINI_RECIPE_MODEL,
            chat_model=cfg.GEMINI_CHAT_MODEL,
            temperature=cfg.TEMPERATURE,
            chat_temperature=cfg.CHAT_TEMPERATURE,
            max_output_tokens=cfg.MAX_OUTPUT_TOKENS,
            chat_max_output_tokens=cfg.CHAT_MAX_OUTPUT_TOKENS,
        )
    if name == "openai":
        return OpenAIProvider(
            api_key=cfg.OPENAI_API_KEY,
            recipe_model=cfg.OPENAI_RECIPE_MODEL,
            chat_model=cfg.OPENAI_CHAT_MODEL,
            temperature=cfg.TEMPERATURE,
            chat_temperature=cfg.CHAT_TEMPERATURE,
            max_output_tokens=cfg.MAX_OUTPUT_TOKENS,
            chat_max_output_tokens=cfg.CHAT_MAX_OUTPUT_TOKENS,
        )
    raise ValueError(f"LLM provider '{name}' not supported. Use 'gemini' or 'openai'.")


def create_embedding_provider(name: str, cfg: Config) -> EmbeddingProvider:
    """Build the embedding provider for a provider name.

    Raises:
        ValueError: Unknown provider name.
    """
    if name == "gemini":
        return GeminiEmbeddingProvider(api_key=cfg.GOOGLE_API_KEY, model=cfg.GEMINI_EMBEDDING_MODEL)
    if name == "openai":
        return OpenAIEmbeddingProvider(
            api_key=cfg.OPENAI_API_KEY,
            model=cfg.OPENAI_EMBEDDING_MODEL,
            dimensions=cfg.OPENAI_EMBEDDING_DIMENSIONS,
        )
    raise ValueError(f"Embedding provider '{name}' not supported. Use 'gemini' or 'openai'.")
