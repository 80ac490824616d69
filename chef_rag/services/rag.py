"""RAG context builder: similar-recipe retrieval formatted for prompt injection."""

from typing import Optional

from chef_rag.models.models import RAGContext, ScoredRecipe
from chef_rag.prompts.prompts import RAG_RECIPE_BLOCK, wrap_rag_context
from chef_rag.store.vector_store import VectorStore, extract_ingredient_fragment
from chef_rag.utils.config import Config, config
from chef_rag.utils.errors import QuotaExceededError
from chef_rag.utils.logger import logger

# Over-fetch so near-duplicates collapsing during dedup still leave enough results
OVERFETCH_FACTOR = 3


def dedupe_by_dish_name(results: list[ScoredRecipe]) -> list[ScoredRecipe]:
    """Keep the lowest-distance hit per dish name, in first-seen order."""
    best: dict[str, ScoredRecipe] = {}
    for hit in results:
        key = hit.document.metadata.dish_name or "unknown"
        existing = best.get(key)
        if existing is None or hit.distance < existing.distance:
            best[key] = hit
    return list(best.values())


def main_ingredients(hit: ScoredRecipe) -> str:
    """Ingredient line for a reference recipe (stored list, else parsed from text)."""
    names = hit.document.metadata.ingredients
    if names:
        return ", ".join(names)
    return extract_ingredient_fragment(hit.document.text) or "N/A"


def format_reference(rank: int, hit: ScoredRecipe) -> str:
    meta = hit.document.metadata
    return RAG_RECIPE_BLOCK.format(
        rank=rank,
        similarity=hit.similarity,
        dish_name=meta.dish_name,
        description=meta.description or "N/A",
        ingredients=main_ingredients(hit),
        prep_time=meta.prep_time,
        cook_time=meta.cook_time,
        servings=meta.servings,
    )


class RAGService:
    """Builds prompt context from previously generated recipes.

    Retrieval failures never abort generation: every error degrades to an
    empty context, with the cause recorded on the result.
    """

    def __init__(self, store: VectorStore, settings: Optional[Config] = None) -> None:
        self.store = store
        self.settings = settings or config

    async def retrieve_context(self, dish_name: str, categories: list[str]) -> RAGContext:
        if not self.store.is_available():
            logger.warning("Vector store not available - skipping RAG")
            return RAGContext()

        try:
            logger.debug(f"🔍 RAG search: {dish_name}", extra={"dish_name": dish_name})
            results = await self.store.search_similar_recipes(
                dish_name,
                self.settings.RAG_TOP_K * OVERFETCH_FACTOR,
                self.settings.RAG_SIMILARITY_THRESHOLD,
            )

            if not results:
                logger.warning("No recipes found above threshold - generating from scratch")
                return RAGContext(queries_used=[dish_name])

            logger.info(f"📊 RAG results: {len(results)} above threshold {self.settings.RAG_SIMILARITY_THRESHOLD}")

            deduped = dedupe_by_dish_name(results)
            logger.debug(f"Deduplication: {len(results)} → {len(deduped)} unique recipes")

            top_results = deduped[: self.settings.RAG_CONTEXT_LIMIT]
            for idx, hit in enumerate(top_results, start=1):
                logger.info(f'  {idx}. "{hit.document.metadata.dish_name}" - similarity: {hit.similarity:.4f}')

            context = wrap_rag_context([format_reference(idx, hit) for idx, hit in enumerate(top_results, start=1)])
            logger.info(f"Using {len(top_results)} similar recipes from {len(deduped)} unique matches")

            return RAGContext(
                context=context,
                recipes_found=len(top_results),
                queries_used=[dish_name],
                top_results=[hit.document for hit in top_results],
            )
        except QuotaExceededError as e:
            logger.error(
                f"Embedding quota exceeded during RAG search: {e}. "
                "Suggestion: switch EMBEDDING_PROVIDER (gemini has a free tier).",
                extra={"provider": self.store.embedder.name, "error_kind": "quota"},
            )
            return RAGContext(error="quota_exceeded")
        except Exception as e:
            logger.error(f"RAG retrieval failed: {e}", exc_info=True, extra={"error_kind": "generic"})
            return RAGContext(error="retrieval_failed")
