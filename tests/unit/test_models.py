"""Unit tests for Pydantic models validation."""

import pytest
from pydantic import ValidationError

from chef_rag.models.models import (
    ChatMessage,
    IngredientSuggestionRequest,
    Recipe,
    RecipeDocument,
    RecipeGenerationRequest,
    RecipeMetadata,
    RecipeSummary,
    ScoredRecipe,
)


class TestRecipe:
    """Test the structured recipe schema returned by the LLM."""

    def test_accepts_camel_case_payload(self):
        """Test that provider JSON in camelCase validates."""
        recipe = Recipe.model_validate(
            {
                "dishName": "Gà nướng",
                "description": "Gà nướng mật ong",
                "prepTime": "15 phút",
                "cookTime": "40 phút",
                "servings": "2 người",
                "ingredients": [{"name": "Gà", "quantity": "1 con", "whereToFind": "Chợ"}],
                "steps": [{"stepNumber": 1, "description": "Ướp gà", "videoUrl": None}],
                "shoppingTips": "Mua gà ta",
            }
        )

        assert recipe.dish_name == "Gà nướng"
        assert recipe.ingredients[0].where_to_find == "Chợ"
        assert recipe.steps[0].step_number == 1

    def test_dumps_camel_case_by_alias(self, sample_recipe):
        """Test that by_alias dumps use the wire field names."""
        data = sample_recipe.model_dump(by_alias=True)

        assert data["dishName"] == "Phở bò"
        assert "prepTime" in data
        assert "stepNumber" in data["steps"][0]

    def test_coerces_numeric_free_text_fields(self):
        """Test that numbers for servings/times become strings."""
        recipe = Recipe(
            dish_name="Trứng chiên",
            servings=2,
            prep_time=5,
            ingredients=[{"name": "Trứng"}],
            steps=[{"step_number": 1, "description": "Chiên trứng"}],
        )

        assert recipe.servings == "2"
        assert recipe.prep_time == "5"

    def test_rejects_missing_ingredients(self):
        """Test that an empty ingredient list is invalid."""
        with pytest.raises(ValidationError):
            Recipe(dish_name="X", ingredients=[], steps=[{"step_number": 1, "description": "a"}])

    def test_rejects_missing_steps(self):
        with pytest.raises(ValidationError):
            Recipe(dish_name="X", ingredients=[{"name": "a"}])

    def test_rejects_empty_dish_name(self):
        with pytest.raises(ValidationError):
            Recipe(dish_name="  ", ingredients=[{"name": "a"}], steps=[{"step_number": 1, "description": "a"}])


class TestRecipeMetadata:
    """Test flattening to and from Chroma metadata."""

    def test_to_store_flattens_lists(self):
        """Test that list fields are comma-joined under camelCase keys."""
        meta = RecipeMetadata(
            dish_name="Phở bò",
            categories=["quick", "healthy"],
            ingredients=["Bánh phở", "Thịt bò"],
            created_at="2026-01-01T00:00:00.000Z",
        )

        stored = meta.to_store()

        assert stored["dishName"] == "Phở bò"
        assert stored["categories"] == "quick, healthy"
        assert stored["ingredients"] == "Bánh phở, Thịt bò"
        assert stored["createdAt"] == "2026-01-01T00:00:00.000Z"
        assert "updatedAt" not in stored
        assert all(isinstance(value, str) for value in stored.values())

    def test_from_store_restores_lists(self):
        """Test that stored metadata round-trips back to lists."""
        meta = RecipeMetadata.from_store(
            {"dishName": "Bún chả", "categories": "quick, easy", "ingredients": "Bún, Thịt heo", "updatedAt": "x"}
        )

        assert meta.categories == ["quick", "easy"]
        assert meta.ingredients == ["Bún", "Thịt heo"]
        assert meta.updated_at == "x"

    def test_from_store_tolerates_missing_fields(self):
        """Test that legacy documents without metadata still load."""
        meta = RecipeMetadata.from_store(None)

        assert meta.dish_name == "unknown"
        assert meta.categories == []
        assert meta.language == "vi"

    def test_created_at_defaults_to_now(self):
        meta = RecipeMetadata(dish_name="Canh chua")
        assert meta.created_at.endswith("Z")


class TestScoredRecipe:
    """Test similarity derivation."""

    def test_similarity_is_one_minus_distance(self):
        document = RecipeDocument(id="1", text="t", metadata=RecipeMetadata(dish_name="A"))
        hit = ScoredRecipe(document=document, distance=0.25)

        assert hit.similarity == pytest.approx(0.75)


class TestRecipeGenerationRequest:
    """Test request normalization and validation."""

    def test_defaults(self):
        request = RecipeGenerationRequest(dish_name="Phở")

        assert request.categories == []
        assert request.language == "vi"
        assert request.serving_size is None

    def test_categories_normalized(self):
        """Test that categories are lower-cased and deduplicated."""
        request = RecipeGenerationRequest(dish_name="Phở", categories=["Quick", "quick", " HEALTHY "])

        assert request.categories == ["quick", "healthy"]

    def test_single_category_string_accepted(self):
        request = RecipeGenerationRequest(dish_name="Phở", categories="easy")
        assert request.categories == ["easy"]

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError) as exc:
            RecipeGenerationRequest(dish_name="Phở", categories=["spicy"])
        assert "spicy" in str(exc.value)

    def test_language_normalized(self):
        assert RecipeGenerationRequest(dish_name="Pho", language="ENG").language == "eng"

    def test_unknown_language_rejected(self):
        with pytest.raises(ValidationError):
            RecipeGenerationRequest(dish_name="Pho", language="fr")

    @pytest.mark.parametrize("serving_size", [0, 51])
    def test_serving_size_bounds(self, serving_size):
        with pytest.raises(ValidationError):
            RecipeGenerationRequest(dish_name="Pho", serving_size=serving_size)

    def test_dish_name_stripped_and_required(self):
        assert RecipeGenerationRequest(dish_name="  Phở  ").dish_name == "Phở"
        with pytest.raises(ValidationError):
            RecipeGenerationRequest(dish_name="   ")


class TestRecipeSummary:
    def test_from_document_copies_metadata(self):
        """Test that summaries expose metadata only."""
        document = RecipeDocument(
            id="abc",
            text="long text",
            metadata=RecipeMetadata(dish_name="Bún bò", categories=["quick"], created_at="t"),
        )

        summary = RecipeSummary.from_document(document)

        assert summary.dish_name == "Bún bò"
        assert summary.categories == ["quick"]
        assert not hasattr(summary, "text")


class TestChatMessage:
    """Test ChatMessage model validation."""

    def test_whitespace_stripped(self):
        msg = ChatMessage(user_id="u1", message="  Hôm nay nấu gì?  ")
        assert msg.message == "Hôm nay nấu gì?"

    def test_empty_message_rejected(self):
        with pytest.raises(ValidationError):
            ChatMessage(user_id="u1", message="")

    def test_message_too_long_rejected(self):
        with pytest.raises(ValidationError):
            ChatMessage(user_id="u1", message="a" * 2001)


class TestIngredientSuggestionRequest:
    """Test ingredient suggestion input validation."""

    def test_defaults(self):
        request = IngredientSuggestionRequest(ingredients=["Trứng"])
        assert request.cooking_style == "any"
        assert request.language == "vi"
        assert request.serving_size is None

    def test_comma_separated_string_accepted(self):
        request = IngredientSuggestionRequest(ingredients="Trứng, Cà chua,, ")
        assert request.ingredients == ["Trứng", "Cà chua"]

    def test_style_and_language_normalized(self):
        request = IngredientSuggestionRequest(ingredients=["Trứng"], cooking_style=" SOUP ", language="ENG")
        assert request.cooking_style == "soup"
        assert request.language == "eng"

    def test_empty_ingredients_rejected(self):
        with pytest.raises(ValidationError):
            IngredientSuggestionRequest(ingredients=[" "])


class TestRecipeDocument:
    def test_exposes_text_and_metadata_only(self):
        """Test that documents read back from the store carry no embedding vector."""
        assert set(RecipeDocument.model_fields) == {"id", "text", "metadata"}
