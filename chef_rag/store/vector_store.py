"""Recipe vector store backed by ChromaDB.

Flow:

1. initialize() connects to Chroma (server URI or local path) and opens the
   recipe collection with cosine distance. No URI = disabled, not an error.
2. add_recipe() builds a compressed, weighted text for each generated
   recipe, embeds it and stores text + embedding + metadata.
3. search_similar_recipes() / search_recipes() embed a query and run a
   nearest-neighbour search.
4. reindex_recipe() / reindex_all() rebuild text and embeddings in place
   when the weighting configuration changes.

Chroma's client is synchronous; calls run through asyncio.to_thread.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

import chromadb

from chef_rag.models.models import (
    Recipe,
    RecipeDocument,
    RecipeMetadata,
    ReindexResult,
    ScoredRecipe,
    StoreWriteResult,
    utc_now_iso,
)
from chef_rag.providers.base import EmbeddingProvider
from chef_rag.utils.config import Config, config
from chef_rag.utils.errors import QuotaExceededError, StoreUnavailableError
from chef_rag.utils.logger import logger

MAX_INGREDIENTS_IN_TEXT = 8
MAX_DESCRIPTION_IN_TEXT = 150
# Fields before the ingredient list in "<dish>. <categories>. <description>. <ingredients>"
INGREDIENT_FIELD_INDEX = 3


def build_recipe_text(
    dish_name: str,
    description: str,
    categories: list[str],
    ingredient_names: list[str],
    dishname_weight: int,
    category_weight: int,
    max_length: int,
) -> str:
    """Build the weighted embedding text for a recipe.

    Repeating the dish name and categories biases the embedding towards
    them. Layout: ``<dish x W>. <categories x W>. <description>. <ingredients>``,
    truncated to max_length (mid-field cuts are accepted).
    """
    names = [name.strip() for name in ingredient_names if name and name.strip()][:MAX_INGREDIENTS_IN_TEXT]
    short_description = (description or "")[:MAX_DESCRIPTION_IN_TEXT]
    dish_part = " ".join([dish_name] * dishname_weight)
    category_part = " ".join([", ".join(categories)] * category_weight) if categories else ""

    text = f"{dish_part}. {category_part}. {short_description}. {', '.join(names)}"
    return text[:max_length]


def extract_ingredient_fragment(text: str) -> str:
    """Best-effort ingredient fragment from a stored text.

    The ingredient list is the last ``". "`` segment, so sentences inside
    the description do not leak into it.
    """
    parts = (text or "").split(". ")
    if len(parts) <= INGREDIENT_FIELD_INDEX:
        return ""
    return parts[-1].strip()


def parse_ingredient_names(fragment: str) -> list[str]:
    return [name.strip() for name in fragment.split(",") if name.strip()]


class VectorStore:
    """Adapter over the Chroma recipe collection.

    A single instance is shared by every request; it holds no per-request state.
    """

    def __init__(self, embedder: EmbeddingProvider, settings: Optional[Config] = None) -> None:
        self.embedder = embedder
        self.settings = settings or config
        self._client: Any = None
        self._collection: Any = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _connect(self):
        uri = self.settings.VECTOR_STORE_URI
        if uri.startswith(("http://", "https://")):
            parsed = urlparse(uri)
            return chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or (443 if parsed.scheme == "https" else 8000),
                ssl=parsed.scheme == "https",
                database=self.settings.VECTOR_DATABASE,
            )
        Path(uri).mkdir(parents=True, exist_ok=True)
        return chromadb.PersistentClient(path=uri, database=self.settings.VECTOR_DATABASE)

    async def initialize(self) -> None:
        """Connect and open the collection. Never raises; failures leave the store disabled."""
        if not self.settings.VECTOR_STORE_URI:
            logger.warning("⚠️  Vector store disabled (VECTOR_STORE_URI not set)")
            return

        try:
            self._client = await asyncio.to_thread(self._connect)
            self._collection = await asyncio.to_thread(
                self._client.get_or_create_collection,
                name=self.settings.VECTOR_COLLECTION_NAME,
                metadata={"hnsw:space": "cosine", "index_name": self.settings.VECTOR_INDEX_NAME},
            )
            logger.info(
                f"✓ Vector store initialized (collection={self.settings.VECTOR_COLLECTION_NAME}, "
                f"index={self.settings.VECTOR_INDEX_NAME})"
            )
        except Exception as e:
            logger.error(f"Failed to initialize vector store: {e}", exc_info=True)
            self._client = None
            self._collection = None

    async def close(self) -> None:
        # Chroma clients hold no long-lived sockets; dropping references is enough
        if self._client is not None:
            self._client = None
            self._collection = None
            logger.info("✓ Vector store disconnected")

    def is_available(self) -> bool:
        return self._collection is not None

    def _require_collection(self):
        if self._collection is None:
            raise StoreUnavailableError()
        return self._collection

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _build_text(self, metadata: RecipeMetadata, ingredient_names: list[str]) -> str:
        return build_recipe_text(
            dish_name=metadata.dish_name,
            description=metadata.description,
            categories=metadata.categories,
            ingredient_names=ingredient_names,
            dishname_weight=self.settings.DISHNAME_WEIGHT,
            category_weight=self.settings.CATEGORY_WEIGHT,
            max_length=self.settings.MAX_RECIPE_TEXT_LENGTH,
        )

    async def add_recipe(self, recipe: Recipe, categories: list[str], language: str) -> StoreWriteResult:
        """Store a generated recipe.

        Quota exhaustion while embedding skips the write (reported in the
        result); any other embedding or storage error propagates.
        """
        if not self.is_available():
            logger.warning("Vector store not available - recipe not stored", extra={"dish_name": recipe.dish_name})
            return StoreWriteResult(stored=False, skipped_reason="unavailable")

        ingredient_names = [ingredient.name for ingredient in recipe.ingredients]
        metadata = RecipeMetadata(
            dish_name=recipe.dish_name,
            description=recipe.description,
            categories=list(categories),
            language=language,
            prep_time=recipe.prep_time,
            cook_time=recipe.cook_time,
            servings=recipe.servings,
            ingredients=ingredient_names,
        )
        text = self._build_text(metadata, ingredient_names)

        try:
            embedding = await self.embedder.embed(text)
        except QuotaExceededError as e:
            logger.error(
                f"Embedding quota exceeded - skipping storage: {e}",
                extra={"dish_name": recipe.dish_name, "provider": self.embedder.name},
            )
            return StoreWriteResult(stored=False, skipped_reason="quota_exceeded")

        document_id = uuid.uuid4().hex
        await asyncio.to_thread(
            self._require_collection().add,
            ids=[document_id],
            embeddings=[embedding],
            documents=[text],
            metadatas=[metadata.to_store()],
        )
        logger.info("💾 Recipe stored", extra={"dish_name": recipe.dish_name})
        return StoreWriteResult(stored=True, document_id=document_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _query(self, query: str, limit: int) -> list[ScoredRecipe]:
        collection = self._require_collection()
        query_embedding = await self.embedder.embed(query)
        results = await asyncio.to_thread(
            collection.query,
            query_embeddings=[query_embedding],
            n_results=limit,
            include=["documents", "metadatas", "distances"],
        )

        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        scored: list[ScoredRecipe] = []
        for doc_id, text, meta, distance in zip(ids, documents, metadatas, distances):
            document = RecipeDocument(id=doc_id, text=text or "", metadata=RecipeMetadata.from_store(meta))
            scored.append(ScoredRecipe(document=document, distance=float(distance)))
        return scored

    async def search_similar_recipes(
        self,
        query: str,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> list[ScoredRecipe]:
        """Nearest neighbours with similarity (1 - distance) >= threshold, best first.

        Returns [] when the store is unavailable. Embedding errors propagate.
        """
        if not self.is_available():
            return []

        limit = limit if limit is not None else self.settings.RAG_TOP_K
        threshold = threshold if threshold is not None else self.settings.RAG_SIMILARITY_THRESHOLD

        results = await self._query(query, limit)
        return [hit for hit in results if 1 - hit.distance >= threshold]

    async def search_recipes(self, query: str, limit: int = 5) -> list[RecipeDocument]:
        """Plain similarity search without scores or threshold.

        Raises:
            StoreUnavailableError: Store was never initialized.
        """
        if not self.is_available():
            raise StoreUnavailableError()
        return [hit.document for hit in await self._query(query, limit)]

    async def count(self) -> int:
        return await asyncio.to_thread(self._require_collection().count)

    async def status(self) -> dict:
        """Diagnostic snapshot: document count, index name, samples, search health."""
        if not self.is_available():
            return {
                "initialized": False,
                "message": "Vector store not configured. Set VECTOR_STORE_URI in .env",
            }

        collection = self._require_collection()
        recipe_count = await self.count()
        sample = await asyncio.to_thread(collection.get, limit=5, include=["metadatas"])
        sample_names = [RecipeMetadata.from_store(meta).dish_name for meta in sample.get("metadatas") or []]

        search_error: Optional[str] = None
        try:
            await self.search_recipes("test", 1)
        except Exception as e:
            search_error = str(e)

        return {
            "initialized": True,
            "recipe_count": recipe_count,
            "index_name": self.settings.VECTOR_INDEX_NAME,
            "collection": self.settings.VECTOR_COLLECTION_NAME,
            "sample_recipes": sample_names,
            "vector_search_works": search_error is None,
            "vector_search_error": search_error,
        }

    # ------------------------------------------------------------------
    # Reindex
    # ------------------------------------------------------------------

    async def _reindex_document(self, doc_id: str, text: str, stored_metadata: Optional[dict]) -> None:
        metadata = RecipeMetadata.from_store(stored_metadata)
        ingredient_names = metadata.ingredients or parse_ingredient_names(extract_ingredient_fragment(text))

        new_text = self._build_text(metadata, ingredient_names)
        embedding = await self.embedder.embed(new_text)

        # created_at is carried over untouched
        metadata.ingredients = ingredient_names
        metadata.updated_at = utc_now_iso()
        await asyncio.to_thread(
            self._require_collection().update,
            ids=[doc_id],
            embeddings=[embedding],
            documents=[new_text],
            metadatas=[metadata.to_store()],
        )

    async def reindex_recipe(self, dish_name: str) -> bool:
        """Rebuild text and embedding for the first document with this dish name.

        Returns:
            False when no document matches.

        Raises:
            StoreUnavailableError: Store was never initialized.
        """
        collection = self._require_collection()
        found = await asyncio.to_thread(
            collection.get,
            where={"dishName": dish_name},
            limit=1,
            include=["documents", "metadatas"],
        )
        ids = found.get("ids") or []
        if not ids:
            logger.warning("Reindex skipped - recipe not found", extra={"dish_name": dish_name})
            return False

        await self._reindex_document(ids[0], (found.get("documents") or [""])[0] or "", (found.get("metadatas") or [{}])[0])
        logger.info("✓ Recipe reindexed", extra={"dish_name": dish_name})
        return True

    async def _all_documents(self) -> list[tuple[str, str, dict]]:
        collection = self._require_collection()
        batch_size = self.settings.REINDEX_BATCH_SIZE
        rows: list[tuple[str, str, dict]] = []
        offset = 0
        while True:
            page = await asyncio.to_thread(
                collection.get,
                limit=batch_size,
                offset=offset,
                include=["documents", "metadatas"],
            )
            ids = page.get("ids") or []
            documents = page.get("documents") or [""] * len(ids)
            metadatas = page.get("metadatas") or [{}] * len(ids)
            rows.extend(zip(ids, documents, metadatas))
            if len(ids) < batch_size:
                return rows
            offset += batch_size

    async def reindex_all(self) -> ReindexResult:
        """Reindex every stored document; individual failures are counted, not raised.

        Raises:
            StoreUnavailableError: Store was never initialized.
        """
        rows = await self._all_documents()
        result = ReindexResult(total=len(rows))
        logger.info(
            f"Reindexing {result.total} recipes (dish weight={self.settings.DISHNAME_WEIGHT}, "
            f"category weight={self.settings.CATEGORY_WEIGHT}, max length={self.settings.MAX_RECIPE_TEXT_LENGTH})"
        )

        for index, (doc_id, text, metadata) in enumerate(rows, start=1):
            dish_name = (metadata or {}).get("dishName", doc_id)
            try:
                await self._reindex_document(doc_id, text or "", metadata)
                result.success += 1
                logger.debug(f"[{index}/{result.total}] reindexed", extra={"dish_name": dish_name})
            except Exception as e:
                result.failed += 1
                logger.error(f"[{index}/{result.total}] reindex failed: {e}", extra={"dish_name": dish_name})

        logger.info(f"Reindex complete: {result.success} succeeded, {result.failed} failed")
        return result
