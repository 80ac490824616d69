"""Shared fixtures for unit tests.

Every remote collaborator (embedding API, LLM API, Chroma) is replaced by
an in-memory fake or a mock.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from chef_rag.models.models import Ingredient, Recipe, RecipeStep
from chef_rag.store.vector_store import VectorStore
from chef_rag.utils.config import Config


class FakeCollection:
    """In-memory stand-in for a Chroma collection.

    Query distances come from ``distances`` (doc id -> cosine distance,
    default 0.5) so tests control ranking directly.
    """

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.distances: dict[str, float] = {}
        self.fail_update_ids: set[str] = set()

    def add(self, ids, embeddings, documents, metadatas):
        for doc_id, embedding, document, metadata in zip(ids, embeddings, documents, metadatas):
            self.rows[doc_id] = {"embedding": embedding, "document": document, "metadata": dict(metadata)}

    def update(self, ids, embeddings, documents, metadatas):
        for doc_id, embedding, document, metadata in zip(ids, embeddings, documents, metadatas):
            if doc_id in self.fail_update_ids:
                raise RuntimeError(f"update failed for {doc_id}")
            self.rows[doc_id] = {"embedding": embedding, "document": document, "metadata": dict(metadata)}

    def count(self):
        return len(self.rows)

    def query(self, query_embeddings, n_results, include):
        ranked = sorted(self.rows, key=lambda doc_id: self.distances.get(doc_id, 0.5))[:n_results]
        return {
            "ids": [ranked],
            "documents": [[self.rows[i]["document"] for i in ranked]],
            "metadatas": [[self.rows[i]["metadata"] for i in ranked]],
            "distances": [[self.distances.get(i, 0.5) for i in ranked]],
        }

    def get(self, where=None, limit=None, offset=0, include=None):
        ids = list(self.rows)
        if where:
            ids = [i for i in ids if all(self.rows[i]["metadata"].get(k) == v for k, v in where.items())]
        ids = ids[offset:]
        if limit is not None:
            ids = ids[:limit]
        return {
            "ids": ids,
            "documents": [self.rows[i]["document"] for i in ids],
            "metadatas": [self.rows[i]["metadata"] for i in ids],
        }

    def put(self, doc_id, document, metadata, distance=0.5, embedding=None):
        """Seed a stored document directly."""
        self.rows[doc_id] = {"embedding": embedding or [0.0], "document": document, "metadata": dict(metadata)}
        self.distances[doc_id] = distance


@pytest.fixture
def settings(monkeypatch):
    """Config with credentials and a local vector store path."""
    monkeypatch.setenv("GOOGLE_API_KEY", "test-google-key")
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("VECTOR_STORE_URI", "tmp/test-chroma")
    for name in ("LLM_PROVIDER", "CHAT_PROVIDER", "EMBEDDING_PROVIDER", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    return Config()


@pytest.fixture
def embedder():
    mock = MagicMock()
    mock.name = "fake"
    mock.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    mock.is_available.return_value = True
    return mock


@pytest.fixture
def collection():
    return FakeCollection()


@pytest_asyncio.fixture
async def store(embedder, settings, collection):
    """Initialized VectorStore over the in-memory collection."""
    client = MagicMock()
    client.get_or_create_collection.return_value = collection
    with patch("chef_rag.store.vector_store.chromadb.PersistentClient", return_value=client), patch(
        "chef_rag.store.vector_store.Path.mkdir"
    ):
        vector_store = VectorStore(embedder, settings)
        await vector_store.initialize()
    return vector_store


@pytest.fixture
def sample_recipe():
    return Recipe(
        dish_name="Phở bò",
        description="Món phở truyền thống Hà Nội với nước dùng xương bò",
        prep_time="30 phút",
        cook_time="3 giờ",
        servings="4 người",
        ingredients=[
            Ingredient(name="Bánh phở", quantity="500g", where_to_find="Chợ"),
            Ingredient(name="Thịt bò", quantity="300g"),
            Ingredient(name="Hành tây", quantity="1 củ"),
        ],
        steps=[
            RecipeStep(step_number=1, description="Ninh xương bò"),
            RecipeStep(step_number=2, description="Trụng bánh phở"),
            RecipeStep(step_number=3, description="Chan nước dùng"),
        ],
        shopping_tips="Mua thịt bò buổi sáng ở chợ",
    )
