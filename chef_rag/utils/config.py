"""Configuration management for the recipe RAG service.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv

from chef_rag.utils.logger import logger


# Load .env file (if exists, silently continues if missing)
load_dotenv()

SUPPORTED_PROVIDERS = ("gemini", "openai")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Provider selection: resolved once at startup, never per request
        # "gemini" = fast/free tier, "openai" = higher quality
        self.LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "gemini").lower()
        # Chat may run on a different provider than recipe generation
        self.CHAT_PROVIDER: str = os.getenv("CHAT_PROVIDER", self.LLM_PROVIDER).lower()
        self.EMBEDDING_PROVIDER: str = os.getenv("EMBEDDING_PROVIDER", self.LLM_PROVIDER).lower()

        # Credentials (GEMINI_API_KEY accepted as an alias)
        self.GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY", "")
        self.OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")

        # Gemini models
        self.GEMINI_RECIPE_MODEL: str = os.getenv("GEMINI_RECIPE_MODEL", "gemini-flash-latest")
        self.GEMINI_CHAT_MODEL: str = os.getenv("GEMINI_CHAT_MODEL", "gemini-flash-latest")
        self.GEMINI_EMBEDDING_MODEL: str = os.getenv("GEMINI_EMBEDDING_MODEL", "text-embedding-004")

        # OpenAI models
        self.OPENAI_RECIPE_MODEL: str = os.getenv("OPENAI_RECIPE_MODEL", "gpt-4o-mini")
        self.OPENAI_CHAT_MODEL: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
        self.OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
        # Reduced from the model's native 1536 to save quota
        self.OPENAI_EMBEDDING_DIMENSIONS: int = int(os.getenv("OPENAI_EMBEDDING_DIMENSIONS", "512"))

        # Generation parameters
        # Recipes: 0.3 keeps structure stable, chat: 0.7 for a livelier tone
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "2048"))
        self.CHAT_MAX_OUTPUT_TOKENS: int = int(os.getenv("CHAT_MAX_OUTPUT_TOKENS", "1024"))
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.3"))
        self.CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
        # Per-attempt LLM timeout in seconds
        self.REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))
        # Retries after the first attempt (total attempts = LLM_RETRIES + 1)
        self.LLM_RETRIES: int = int(os.getenv("LLM_RETRIES", "3"))

        # RAG tuning
        self.RAG_TOP_K: int = int(os.getenv("RAG_TOP_K", "5"))
        # Cosine similarity between recipe embeddings is typically low, hence 0.15
        self.RAG_SIMILARITY_THRESHOLD: float = float(os.getenv("RAG_SIMILARITY_THRESHOLD", "0.15"))
        self.RAG_CONTEXT_LIMIT: int = int(os.getenv("RAG_CONTEXT_LIMIT", "3"))

        # Document size / embedding weighting
        self.MAX_RECIPE_TEXT_LENGTH: int = int(os.getenv("MAX_RECIPE_TEXT_LENGTH", "500"))
        # Repeat dish name N times in the embedding text for higher priority
        self.DISHNAME_WEIGHT: int = int(os.getenv("DISHNAME_WEIGHT", "3"))
        # Repeat the category list N times
        self.CATEGORY_WEIGHT: int = int(os.getenv("CATEGORY_WEIGHT", "2"))

        # Vector store: http(s):// URI -> Chroma server, anything else -> local path
        # Empty disables retrieval and persistence (supported state)
        self.VECTOR_STORE_URI: str = os.getenv("VECTOR_STORE_URI", "")
        self.VECTOR_DATABASE: str = os.getenv("VECTOR_DATABASE", "default_database")
        self.VECTOR_COLLECTION_NAME: str = os.getenv("VECTOR_COLLECTION_NAME", "recipes")
        self.VECTOR_INDEX_NAME: str = os.getenv("VECTOR_INDEX_NAME", "vector_index")
        self.REINDEX_BATCH_SIZE: int = int(os.getenv("REINDEX_BATCH_SIZE", "100"))

        # Chat session persistence: PostgreSQL when DATABASE_URL is set, SQLite otherwise
        self.DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
        self.CHAT_DB_FILE: str = os.getenv("CHAT_DB_FILE", "tmp/chef_rag_chat.db")
        # Previous chat turns replayed into the model context
        self.MAX_HISTORY: int = int(os.getenv("MAX_HISTORY", "5"))
        # Idle chat sessions are dropped after this many seconds (30 minutes)
        self.SESSION_INACTIVITY_TIMEOUT: int = int(os.getenv("SESSION_INACTIVITY_TIMEOUT", "1800"))
        self.ENABLE_CHAT_RAG: bool = _env_bool("ENABLE_CHAT_RAG", "true")

    def api_key_for(self, provider: str) -> str:
        """Return the credential for a provider name ("" when absent)."""
        if provider == "gemini":
            return self.GOOGLE_API_KEY
        if provider == "openai":
            return self.OPENAI_API_KEY
        return ""

    def validate(self) -> list[str]:
        """Validate configuration.

        Invalid values raise. Absent credentials or vector store URI only
        disable the affected subsystem, so they are reported as warnings.

        Returns:
            List of warning messages for disabled subsystems.

        Raises:
            ValueError: If a value is out of range or a provider name is unknown.
        """
        for name in ("LLM_PROVIDER", "CHAT_PROVIDER", "EMBEDDING_PROVIDER"):
            value = getattr(self, name)
            if value not in SUPPORTED_PROVIDERS:
                raise ValueError(f"{name} must be one of {SUPPORTED_PROVIDERS}, got: {value}")
        if not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}")
        if not (0.0 <= self.CHAT_TEMPERATURE <= 2.0):
            raise ValueError(f"CHAT_TEMPERATURE must be between 0.0 and 2.0, got: {self.CHAT_TEMPERATURE}")
        if self.REQUEST_TIMEOUT <= 0:
            raise ValueError(f"REQUEST_TIMEOUT must be positive, got: {self.REQUEST_TIMEOUT}")
        if self.LLM_RETRIES < 0:
            raise ValueError(f"LLM_RETRIES must be at least 0, got: {self.LLM_RETRIES}")
        if not (0.0 <= self.RAG_SIMILARITY_THRESHOLD <= 1.0):
            raise ValueError(
                f"RAG_SIMILARITY_THRESHOLD must be between 0.0 and 1.0, got: {self.RAG_SIMILARITY_THRESHOLD}"
            )
        for name in ("RAG_TOP_K", "RAG_CONTEXT_LIMIT", "MAX_RECIPE_TEXT_LENGTH", "DISHNAME_WEIGHT",
                     "CATEGORY_WEIGHT", "REINDEX_BATCH_SIZE", "MAX_OUTPUT_TOKENS"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got: {getattr(self, name)}")

        warnings: list[str] = []
        for name in ("LLM_PROVIDER", "CHAT_PROVIDER", "EMBEDDING_PROVIDER"):
            provider = getattr(self, name)
            if not self.api_key_for(provider):
                warnings.append(f"{name}={provider} but its API key is not set - that feature will not work")
        if not self.VECTOR_STORE_URI:
            warnings.append("VECTOR_STORE_URI not set - vector search and recipe persistence disabled")

        for message in warnings:
            logger.warning(message)
        return warnings


# Create module-level config instance and validate immediately
config = Config()
config.validate()
