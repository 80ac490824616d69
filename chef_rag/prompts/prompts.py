"""Prompt templates for recipe generation, RAG context and chat.

Recipe prompts are written in Vietnamese (the service's primary audience);
the requested output language is an explicit instruction line.
"""

from typing import Optional

CATEGORY_PROMPT_HINTS: dict[str, str] = {
    "quick": "Ưu tiên công thức dưới 20 phút, ít bước, tối giản dụng cụ.",
    "easy": "Dành cho người mới bắt đầu, bước rõ ràng, tránh kỹ thuật phức tạp.",
    "healthy": "Tối ưu dinh dưỡng, ít dầu mỡ, cân bằng đạm-bột-xơ, gợi ý thay thế lành mạnh.",
}

RAG_CONTEXT_HEADER = "=== THAM KHẢO CÁC CÔNG THỨC TƯƠNG TỰ ==="
RAG_CONTEXT_FOOTER = (
    "=== YÊU CẦU ===\n"
    "Dựa vào các công thức trên, tạo công thức MỚI và SÁNG TẠO với phong cách riêng. "
    "Đảm bảo có ít nhất 3 bước chi tiết."
)

RAG_RECIPE_BLOCK = (
    "Công thức tham khảo {rank} (độ tương đồng: {similarity:.2f}):\n"
    "{dish_name} - {description}\n"
    "Nguyên liệu chính: {ingredients}\n"
    "Thời gian: Chuẩn bị {prep_time}, Nấu {cook_time}, Phục vụ {servings}"
)


def wrap_rag_context(blocks: list[str]) -> str:
    """Wrap formatted reference recipes in the fixed header/footer."""
    return f"\n\n{RAG_CONTEXT_HEADER}\n" + "\n\n".join(blocks) + f"\n\n{RAG_CONTEXT_FOOTER}"


def build_recipe_prompt(
    dish_name: str,
    categories: list[str],
    language: str,
    serving_size: Optional[int] = None,
    rag_context: str = "",
) -> str:
    """Build the full recipe-generation prompt.

    Args:
        dish_name: Dish to generate.
        categories: Normalized categories (quick, easy, healthy).
        language: "vi" or "eng".
        serving_size: Number of people, or None for the 2-4 default.
        rag_context: Output of the RAG context builder ("" when none).

    Returns:
        Prompt text ending with the RAG context, if any.
    """
    category_instruction = f" Categories: {', '.join(categories)}." if categories else ""
    serving_instruction = (
        f" Tính cho {serving_size} người ăn." if serving_size else " Tính cho 2-4 người ăn (mặc định)."
    )
    language_instruction = " English." if language == "eng" else " Tiếng Việt."

    hints = [CATEGORY_PROMPT_HINTS[c] for c in categories if c in CATEGORY_PROMPT_HINTS]
    hint_lines = "".join(f"\n- {hint}" for hint in hints)
    hint_section = f"\nLưu ý theo danh mục:{hint_lines}" if hints else ""

    return (
        f"Tạo công thức chi tiết cho: {dish_name}.{category_instruction}{serving_instruction}{language_instruction}\n"
        "Trả về JSON với:\n"
        "- dishName, description, prepTime, cookTime, servings (số người theo yêu cầu)\n"
        "- ingredients: [{name, quantity (điều chỉnh theo số người), whereToFind (nơi mua ở Việt Nam)}]\n"
        "- steps: [{stepNumber, description, videoUrl (YouTube/TikTok nếu có)}]\n"
        "- shoppingTips: Gợi ý mua nguyên liệu ở VN (chợ nào, siêu thị, thời gian)\n"
        f"Tối thiểu 3 bước, tối đa 6 bước.{hint_section}"
        f"{rag_context}"
    )


COOKING_STYLE_INSTRUCTIONS: dict[str, str] = {
    "dry": "món khô (xào, rim, nướng)",
    "soup": "món nước (canh, súp, lẩu)",
    "any": "món khô hoặc nước",
}

# Appended to the ingredient search query so retrieval leans towards the style
COOKING_STYLE_SEARCH_TERMS: dict[str, str] = {"dry": "khô", "soup": "nước canh", "any": ""}


def build_suggestion_search_query(ingredients: list[str], cooking_style: str) -> str:
    return f"món ăn với {' '.join(ingredients)} {COOKING_STYLE_SEARCH_TERMS.get(cooking_style, '')}".strip()


def build_suggestion_prompt(
    ingredients: list[str],
    cooking_style: str,
    language: str,
    serving_size: Optional[int] = None,
    similar_dishes: Optional[list[str]] = None,
) -> str:
    """Build the prompt asking for 2-3 dishes that can be made from the given ingredients.

    Args:
        ingredients: Ingredients the user has on hand.
        cooking_style: "dry", "soup" or "any".
        language: "vi" or "eng".
        serving_size: Number of people, or None for the 2-4 default.
        similar_dishes: Names of stored recipes found for these ingredients.
    """
    ingredient_lines = "\n".join(f"{i}. {name}" for i, name in enumerate(ingredients, start=1))
    style_instruction = COOKING_STYLE_INSTRUCTIONS.get(cooking_style, COOKING_STYLE_INSTRUCTIONS["any"])
    serving_instruction = f"cho {serving_size} người" if serving_size else "cho 2-4 người"
    language_instruction = "English" if language == "eng" else "Tiếng Việt"
    similar_context = (
        "\n\nMột số món tương tự đã được tạo:\n" + "\n".join(f"- {dish}" for dish in similar_dishes)
        if similar_dishes
        else ""
    )

    return f"""Bạn có các nguyên liệu sau:
{ingredient_lines}

Nhiệm vụ: Gợi ý 2-3 món ăn {style_instruction} {serving_instruction} có thể làm được.
Ngôn ngữ: {language_instruction}

Cho mỗi món, trả lời theo format:
**Món [số]**: [Tên món]
- **Độ khả thi**: [Cao/Trung bình/Cần thêm nguyên liệu]
- **Nguyên liệu đang thiếu**: [Liệt kê nếu có, hoặc "Đủ nguyên liệu"]
- **Hướng dẫn tóm tắt**: [2-3 bước chính]
- **Thời gian**: [Tổng thời gian]
{similar_context}

Ưu tiên món dễ làm, tận dụng tối đa nguyên liệu có sẵn."""


def get_chat_instructions() -> str:
    """System instructions for the conversational cooking assistant."""
    return """Bạn là Chef AI - trợ lý ảo chuyên về nấu ăn.

NHIỆM VỤ:
- Tư vấn món ăn, nguyên liệu, kỹ thuật nấu
- Gợi ý công thức phù hợp với sở thích user
- Trả lời câu hỏi về dinh dưỡng, thời gian nấu
- Nhớ preferences và ngữ cảnh cuộc trò chuyện
- Gợi ý món ăn dựa trên nguyên liệu có sẵn

HƯỚNG DẪN:
- Muốn công thức chi tiết → Gợi ý dùng chức năng tạo công thức
- Muốn tìm món tương tự → Gợi ý dùng chức năng tìm kiếm công thức
- Khi tin nhắn có phần "Thông tin từ cơ sở dữ liệu", ưu tiên dùng các món đó

PHONG CÁCH: Thân thiện, nhiệt tình, chuyên nghiệp.
NGÔN NGỮ: Tự động detect và trả lời bằng ngôn ngữ user dùng."""
