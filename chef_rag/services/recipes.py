"""Recipe service: the end-to-end retrieve -> generate -> persist flow,
plus dish suggestions from ingredients the user already has."""

import time
from typing import Optional

from pydantic import ValidationError

from chef_rag.models.models import (
    GeneratedRecipeResponse,
    IngredientSuggestionRequest,
    IngredientSuggestionResponse,
    RecipeGenerationRequest,
    RecipeSummary,
    StoreWriteResult,
    SuggestionMeta,
)
from chef_rag.prompts.prompts import (
    build_recipe_prompt,
    build_suggestion_prompt,
    build_suggestion_search_query,
)
from chef_rag.services.llm import LLMService
from chef_rag.services.rag import RAGService
from chef_rag.store.vector_store import VectorStore
from chef_rag.utils.errors import InvalidRequestError, StoreUnavailableError
from chef_rag.utils.logger import logger

SUGGESTION_SEARCH_LIMIT = 5


class RecipeService:
    """Generates recipes with RAG context and stores them for future retrieval.

    Retrieval and persistence degrade gracefully; only generation failures
    reach the caller.
    """

    def __init__(self, store: VectorStore, rag: RAGService, llm: LLMService) -> None:
        self.store = store
        self.rag = rag
        self.llm = llm

    @staticmethod
    def parse_request(data: dict) -> RecipeGenerationRequest:
        """Validate a raw request dict (accepts "category" as a single-item alias).

        Raises:
            InvalidRequestError: Missing dish name, unknown category or language.
        """
        payload = dict(data)
        if "categories" not in payload and payload.get("category"):
            payload["categories"] = [payload.pop("category")]
        payload.pop("category", None)
        try:
            return RecipeGenerationRequest.model_validate(payload)
        except ValidationError as e:
            details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            raise InvalidRequestError(f"Invalid recipe request: {details}") from e

    async def _store(self, request: RecipeGenerationRequest, recipe) -> StoreWriteResult:
        if not self.store.is_available():
            return StoreWriteResult(stored=False, skipped_reason="unavailable")
        try:
            return await self.store.add_recipe(recipe, request.categories, request.language)
        except Exception as e:
            logger.error(f"Failed to store recipe: {e}", exc_info=True, extra={"dish_name": recipe.dish_name})
            return StoreWriteResult(stored=False, skipped_reason="store_failed")

    async def generate(self, request: RecipeGenerationRequest) -> GeneratedRecipeResponse:
        """Generate, validate and persist a recipe.

        Raises:
            GenerationFailedError: LLM attempts exhausted.
        """
        logger.info("🍳 Generating recipe", extra={"dish_name": request.dish_name})

        rag_context = await self.rag.retrieve_context(request.dish_name, request.categories)
        prompt = build_recipe_prompt(
            dish_name=request.dish_name,
            categories=request.categories,
            language=request.language,
            serving_size=request.serving_size,
            rag_context=rag_context.context,
        )

        generation = await self.llm.generate_recipe(prompt)
        write = await self._store(request, generation.result)

        return GeneratedRecipeResponse(
            recipe=generation.result,
            duration_ms=generation.duration,
            rag_used=rag_context.recipes_found > 0,
            rag_recipes=rag_context.recipes_found,
            stored=write.stored,
            store_skipped_reason=write.skipped_reason,
        )

    async def search(self, query: str, limit: Optional[int] = 5) -> list[RecipeSummary]:
        """Search stored recipes by similarity.

        Raises:
            InvalidRequestError: Empty query.
            StoreUnavailableError: Vector store not configured.
        """
        if not query or not query.strip():
            raise InvalidRequestError("Query must not be empty")
        if not self.store.is_available():
            raise StoreUnavailableError()
        documents = await self.store.search_recipes(query.strip(), limit or 5)
        return [RecipeSummary.from_document(document) for document in documents]

    async def _similar_dishes(self, query: str) -> list[str]:
        if not self.store.is_available():
            return []
        try:
            documents = await self.store.search_recipes(query, SUGGESTION_SEARCH_LIMIT)
        except Exception as e:
            logger.warning(f"Failed to search similar recipes: {e}")
            return []
        logger.debug(f"Found {len(documents)} similar recipes with these ingredients")
        return [document.metadata.dish_name for document in documents]

    async def suggest_from_ingredients(
        self,
        ingredients: list[str],
        cooking_style: Optional[str] = "any",
        serving_size: Optional[int] = None,
        language: Optional[str] = "vi",
    ) -> IngredientSuggestionResponse:
        """Suggest 2-3 dishes that can be cooked from the given ingredients.

        Stored recipes matching the ingredients are listed in the prompt
        when the vector store is available. The suggestions are free text
        from the chat provider and are not stored.

        Raises:
            InvalidRequestError: No ingredients, unknown cooking style or language.
            LLMTimeoutError: Chat provider exceeded REQUEST_TIMEOUT.
            ProviderError: Chat provider failure.
        """
        try:
            request = IngredientSuggestionRequest(
                ingredients=ingredients,
                cooking_style=cooking_style,
                serving_size=serving_size,
                language=language,
            )
        except ValidationError as e:
            details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            raise InvalidRequestError(f"Invalid suggestion request: {details}") from e

        logger.info(f"🥕 Suggesting dishes from {len(request.ingredients)} ingredients ({request.cooking_style})")

        similar_dishes = await self._similar_dishes(
            build_suggestion_search_query(request.ingredients, request.cooking_style)
        )
        prompt = build_suggestion_prompt(
            ingredients=request.ingredients,
            cooking_style=request.cooking_style,
            language=request.language,
            serving_size=request.serving_size,
            similar_dishes=similar_dishes,
        )

        start = time.monotonic()
        suggestions = await self.llm.generate_chat(prompt)
        duration = int((time.monotonic() - start) * 1000)
        logger.info("✅ Suggestions generated", extra={"duration_ms": duration})

        return IngredientSuggestionResponse(
            suggestions=suggestions,
            meta=SuggestionMeta(
                ingredients_used=request.ingredients,
                cooking_style=request.cooking_style,
                serving_size=str(request.serving_size) if request.serving_size else "2-4",
                duration_ms=duration,
                similar_recipes_found=len(similar_dishes),
            ),
        )
