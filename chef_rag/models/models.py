"""Data models and schemas for the recipe RAG service.

Defines Pydantic models for the structured recipe produced by the LLM,
the documents kept in the vector store, and the value objects passed
between the retrieval, generation and chat services.
All models use Pydantic v2.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional, Annotated

from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel

SUPPORTED_CATEGORIES = ("quick", "easy", "healthy")
SUPPORTED_LANGUAGES = ("eng", "vi")

Language = Literal["eng", "vi"]


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (millisecond precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _split_csv(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


# ============================================================================
# Structured recipe (LLM output schema)
# ============================================================================


class _CamelModel(BaseModel):
    """Accepts both snake_case and camelCase keys; dumps camelCase with by_alias."""

    model_config = ConfigDict(str_strip_whitespace=True, alias_generator=to_camel, populate_by_name=True)


class Ingredient(_CamelModel):
    """One ingredient line of a generated recipe."""

    name: Annotated[str, Field(min_length=1, description="Tên nguyên liệu")]
    quantity: Annotated[str, Field("", description="Số lượng và đơn vị (ví dụ: 2 củ)")]
    where_to_find: Annotated[
        Optional[str],
        Field(None, description="Gợi ý nơi mua ở Việt Nam (vd: Chợ, siêu thị, cửa hàng thực phẩm)"),
    ]


class RecipeStep(_CamelModel):
    """One cooking step."""

    step_number: Annotated[int, Field(ge=1, description="Số thứ tự bước")]
    description: Annotated[str, Field(min_length=1, description="Mô tả chi tiết bước nấu")]
    video_url: Annotated[
        Optional[str],
        Field(None, description="URL video hướng dẫn cho bước này (YouTube/TikTok), để trống nếu không có"),
    ]


class Recipe(_CamelModel):
    """Structured recipe returned by the LLM.

    dish_name, ingredients and steps are mandatory and non-empty; everything
    else is free text that is stored and displayed but never parsed.
    """

    dish_name: Annotated[str, Field(min_length=1, description="Tên đầy đủ của món ăn.")]
    description: Annotated[str, Field("", description="Mô tả món ăn")]
    prep_time: Annotated[str, Field("", description="Thời gian chuẩn bị (ví dụ: 15 phút).")]
    cook_time: Annotated[str, Field("", description="Thời gian nấu (ví dụ: 30 phút).")]
    servings: Annotated[str, Field("", description="Số suất ăn theo yêu cầu (ví dụ: 4 người).")]
    ingredients: Annotated[
        List[Ingredient],
        Field(min_length=1, description="Danh sách các nguyên liệu cần thiết với gợi ý nơi mua."),
    ]
    steps: Annotated[List[RecipeStep], Field(min_length=1, description="Danh sách các bước thực hiện (3-6 bước)")]
    shopping_tips: Annotated[
        Optional[str],
        Field(None, description="Lời khuyên chung về mua nguyên liệu ở Việt Nam (chợ nào tốt, thời gian nào rẻ)"),
    ]

    @field_validator("servings", "prep_time", "cook_time", mode="before")
    @classmethod
    def coerce_free_text(cls, v):
        """Models sometimes answer numbers for free-text fields."""
        if v is None:
            return ""
        return str(v) if not isinstance(v, str) else v


# ============================================================================
# Vector store documents
# ============================================================================


class RecipeMetadata(BaseModel):
    """Metadata stored alongside each recipe document.

    Chroma only accepts flat scalar metadata, so list fields are stored as
    comma-joined strings under camelCase keys (see to_store/from_store).
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    dish_name: Annotated[str, Field(min_length=1, description="Natural key used for deduplication")]
    description: str = ""
    categories: List[str] = Field(default_factory=list)
    language: str = "vi"
    prep_time: str = ""
    cook_time: str = ""
    servings: str = ""
    ingredients: List[str] = Field(default_factory=list, description="Ingredient names, authoritative for reindex")
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None

    def to_store(self) -> dict:
        """Flatten into Chroma-compatible metadata."""
        data = {
            "dishName": self.dish_name,
            "description": self.description,
            "categories": ", ".join(self.categories),
            "language": self.language,
            "prepTime": self.prep_time,
            "cookTime": self.cook_time,
            "servings": self.servings,
            "ingredients": ", ".join(self.ingredients),
            "createdAt": self.created_at,
        }
        if self.updated_at:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_store(cls, data: Optional[dict]) -> "RecipeMetadata":
        """Rebuild metadata from a stored Chroma metadata dict."""
        data = data or {}
        return cls(
            dish_name=data.get("dishName") or "unknown",
            description=data.get("description") or "",
            categories=_split_csv(data.get("categories")),
            language=data.get("language") or "vi",
            prep_time=str(data.get("prepTime") or ""),
            cook_time=str(data.get("cookTime") or ""),
            servings=str(data.get("servings") or ""),
            ingredients=_split_csv(data.get("ingredients")),
            created_at=data.get("createdAt") or "",
            updated_at=data.get("updatedAt"),
        )


class RecipeDocument(BaseModel):
    """Unit of storage and retrieval in the vector store."""

    id: str
    text: str
    metadata: RecipeMetadata


class ScoredRecipe(BaseModel):
    """A similarity-search hit. Lower distance = more similar."""

    document: RecipeDocument
    distance: float

    @property
    def similarity(self) -> float:
        return 1 - self.distance


class StoreWriteResult(BaseModel):
    """Outcome of add_recipe. Skipped writes are reported, not raised."""

    stored: bool
    document_id: Optional[str] = None
    skipped_reason: Optional[Literal["unavailable", "quota_exceeded", "store_failed"]] = None


class ReindexResult(BaseModel):
    """Counts reported by a bulk reindex."""

    total: int = 0
    success: int = 0
    failed: int = 0


class RAGContext(BaseModel):
    """Prompt-injectable context assembled from similar stored recipes."""

    context: str = ""
    recipes_found: int = 0
    queries_used: List[str] = Field(default_factory=list)
    top_results: List[RecipeDocument] = Field(default_factory=list)
    error: Optional[Literal["quota_exceeded", "retrieval_failed"]] = None


# ============================================================================
# Recipe generation
# ============================================================================


class RecipeGenerationRequest(BaseModel):
    """Input for recipe generation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    dish_name: Annotated[str, Field(min_length=1, max_length=200, description="Dish to generate (1-200 chars)")]
    categories: Annotated[List[str], Field(default_factory=list, description="Subset of quick, easy, healthy")]
    language: Annotated[Language, Field("vi", description="Output language: vi or eng")]
    serving_size: Annotated[Optional[int], Field(None, ge=1, le=50, description="Number of people (1-50)")]

    @field_validator("categories", mode="before")
    @classmethod
    def normalize_categories(cls, v):
        """Lower-case, deduplicate and validate categories (accepts a single string)."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        normalized: list[str] = []
        for item in v:
            category = str(item).strip().lower()
            if not category:
                continue
            if category not in SUPPORTED_CATEGORIES:
                raise ValueError(f"Unsupported category '{category}'. Supported: {', '.join(SUPPORTED_CATEGORIES)}")
            if category not in normalized:
                normalized.append(category)
        return normalized

    @field_validator("language", mode="before")
    @classmethod
    def normalize_language(cls, v):
        if v is None:
            return "vi"
        return str(v).strip().lower()


class RecipeGenerationResult(BaseModel):
    """Validated recipe plus wall-clock duration (ms, includes retries)."""

    result: Recipe
    duration: int
    attempts: int = 1
    provider: str = ""


class GeneratedRecipeResponse(BaseModel):
    """What the recipe service returns to its caller."""

    recipe: Recipe
    duration_ms: int
    rag_used: bool
    rag_recipes: int
    stored: bool
    store_skipped_reason: Optional[str] = None


class RecipeSummary(BaseModel):
    """Metadata-only view of a stored recipe for search results."""

    dish_name: str
    description: str
    categories: List[str]
    language: str
    prep_time: str
    cook_time: str
    servings: str
    created_at: str

    @classmethod
    def from_document(cls, document: RecipeDocument) -> "RecipeSummary":
        meta = document.metadata
        return cls(
            dish_name=meta.dish_name,
            description=meta.description,
            categories=meta.categories,
            language=meta.language,
            prep_time=meta.prep_time,
            cook_time=meta.cook_time,
            servings=meta.servings,
            created_at=meta.created_at,
        )


# ============================================================================
# Suggestions from available ingredients
# ============================================================================

CookingStyle = Literal["dry", "soup", "any"]


class IngredientSuggestionRequest(BaseModel):
    """Ingredients on hand plus preferences for dish suggestions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    ingredients: Annotated[List[str], Field(min_length=1, description="Ingredients the user already has")]
    cooking_style: Annotated[CookingStyle, Field("any", description="dry (xào, rim, nướng), soup or any")]
    serving_size: Annotated[Optional[int], Field(None, ge=1, le=50, description="Number of people (1-50)")]
    language: Annotated[Language, Field("vi", description="Output language: vi or eng")]

    @field_validator("ingredients", mode="before")
    @classmethod
    def drop_blank_ingredients(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return [str(item).strip() for item in v or [] if str(item).strip()]

    @field_validator("cooking_style", "language", mode="before")
    @classmethod
    def lower_case(cls, v, info):
        if v is None:
            return "any" if info.field_name == "cooking_style" else "vi"
        return str(v).strip().lower()


class SuggestionMeta(BaseModel):
    ingredients_used: List[str]
    cooking_style: CookingStyle
    serving_size: str
    duration_ms: int
    similar_recipes_found: int


class IngredientSuggestionResponse(BaseModel):
    """Free-text dish suggestions (markdown) and how they were produced."""

    suggestions: str
    meta: SuggestionMeta


# ============================================================================
# Chat
# ============================================================================


class ChatMessage(BaseModel):
    """Incoming chat message."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Annotated[str, Field(min_length=1, max_length=200)]
    message: Annotated[str, Field(min_length=1, max_length=2000, description="User message (1-2000 chars)")]


class SessionInfo(BaseModel):
    user_id: str
    created_at: datetime
    last_activity: datetime
    message_count: Optional[int] = None


class ChatReply(BaseModel):
    message: str
    session_info: SessionInfo
    rag_recipes: int = 0


class ChatHistoryEntry(BaseModel):
    role: str
    content: str


class ChatHistory(BaseModel):
    exists: bool
    message_count: int = 0
    history: List[ChatHistoryEntry] = Field(default_factory=list)
    session_info: Optional[SessionInfo] = None
