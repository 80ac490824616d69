"""Composition root for the recipe RAG service.

Builds every shared component once, in dependency order, and hands out
the same instances to all callers (CLIs, tests, an eventual HTTP layer).
"""

import asyncio
from typing import Optional

from chef_rag.agents.chat_agent import create_chat_agent
from chef_rag.providers.base import EmbeddingProvider, LLMProvider
from chef_rag.providers.factory import create_embedding_provider, create_llm_provider
from chef_rag.services.chat import ChatService
from chef_rag.services.llm import LLMService
from chef_rag.services.rag import RAGService
from chef_rag.services.recipes import RecipeService
from chef_rag.store.vector_store import VectorStore
from chef_rag.utils.config import Config, config
from chef_rag.utils.logger import logger


class Container:
    """Owns the service graph and its lifecycle.

    Usage:
        container = Container()
        await container.initialize()
        try:
            response = await container.recipes.generate(request)
        finally:
            await container.close()
    """

    def __init__(self, settings: Optional[Config] = None, use_chat_db: bool = True) -> None:
        self.settings = settings or config
        self.use_chat_db = use_chat_db

        self.recipe_provider: Optional[LLMProvider] = None
        self.chat_provider: Optional[LLMProvider] = None
        self.embedder: Optional[EmbeddingProvider] = None
        self.store: Optional[VectorStore] = None
        self.rag: Optional[RAGService] = None
        self.llm: Optional[LLMService] = None
        self.recipes: Optional[RecipeService] = None
        self.chat: Optional[ChatService] = None
        self._cleanup_task: Optional[asyncio.Task] = None

    async def initialize(self) -> "Container":
        """Build providers, store and services.

        Never fails because of a missing API key or vector store URI; the
        affected subsystem reports itself unavailable instead.

        Raises:
            ValueError: Unknown provider name in configuration.
        """
        settings = self.settings
        logger.info("=== Initializing Chef RAG service ===")

        logger.info("Step 1/5: Creating providers...")
        self.recipe_provider = create_llm_provider(settings.LLM_PROVIDER, settings)
        self.chat_provider = (
            self.recipe_provider
            if settings.CHAT_PROVIDER == settings.LLM_PROVIDER
            else create_llm_provider(settings.CHAT_PROVIDER, settings)
        )
        self.embedder = create_embedding_provider(settings.EMBEDDING_PROVIDER, settings)
        logger.info(
            f"✓ Providers: recipe={settings.LLM_PROVIDER}, chat={settings.CHAT_PROVIDER}, "
            f"embedding={settings.EMBEDDING_PROVIDER}"
        )

        logger.info("Step 2/5: Connecting vector store...")
        self.store = VectorStore(self.embedder, settings)
        await self.store.initialize()
        logger.info(f"✓ Vector store {'available' if self.store.is_available() else 'disabled'}")

        logger.info("Step 3/5: Building RAG and LLM services...")
        self.rag = RAGService(self.store, settings)
        self.llm = LLMService(self.recipe_provider, self.chat_provider, settings)
        logger.info("✓ RAG and LLM services ready")

        logger.info("Step 4/5: Building recipe service...")
        self.recipes = RecipeService(self.store, self.rag, self.llm)
        logger.info("✓ Recipe service ready")

        logger.info("Step 5/5: Configuring chat...")
        agent = create_chat_agent(settings, use_db=self.use_chat_db)
        self.chat = ChatService(agent, self.store, settings)
        self._cleanup_task = asyncio.create_task(self.chat.run_cleanup_loop())
        logger.info(f"✓ Chat ready (idle sessions expire after {settings.SESSION_INACTIVITY_TIMEOUT}s)")

        logger.info("=== Initialization complete ===")
        return self

    async def close(self) -> None:
        """Stop background work and release the vector store."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        if self.store is not None:
            await self.store.close()
        logger.info("Chef RAG service closed")

    async def __aenter__(self) -> "Container":
        return await self.initialize()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
