#!/usr/bin/env python3
"""Ad hoc query runner for the recipe RAG service.

Generate, search or chat directly without any server.

Usage:
    python query.py "Phở bò"
    python query.py --categories quick,healthy --language eng --servings 2 "Pad thai"
    python query.py --search "gà"                 # Similar stored recipes
    python query.py --chat user-1 "Món gì nấu nhanh với trứng?"
    python query.py --suggest --style soup "trứng, cà chua, hành"   # Dishes from ingredients on hand
    python query.py --debug "Phở bò"              # Show full JSON response

Features:
- Recipe generation with RAG context from previously stored recipes
- Vector similarity search over stored recipes
- Chat with session history (session = user id)
- Dish suggestions from a comma-separated ingredient list
- Debug mode to display the full JSON response
"""

import asyncio
import sys
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown

from chef_rag.app.container import Container
from chef_rag.models.models import GeneratedRecipeResponse, Recipe
from chef_rag.utils.errors import ChefRAGError
from chef_rag.utils.logger import logger

console = Console()

USAGE = (
    'Usage: python query.py [--debug] [--search] [--suggest [--style dry|soup|any]] [--chat USER_ID] [--categories a,b] '
    '[--language vi|eng] [--servings N] "<dish or message>"'
)


def format_recipe_markdown(recipe: Recipe) -> str:
    """Render a recipe as markdown for terminal display."""
    lines = [
        f"# {recipe.dish_name}",
        "",
        recipe.description,
        "",
        f"**Chuẩn bị:** {recipe.prep_time} · **Nấu:** {recipe.cook_time} · **Khẩu phần:** {recipe.servings}",
        "",
        "## Nguyên liệu",
    ]
    for ingredient in recipe.ingredients:
        where = f" _(mua ở: {ingredient.where_to_find})_" if ingredient.where_to_find else ""
        lines.append(f"- {ingredient.name}: {ingredient.quantity}{where}")
    lines += ["", "## Các bước"]
    for step in recipe.steps:
        video = f" [video]({step.video_url})" if step.video_url else ""
        lines.append(f"{step.step_number}. {step.description}{video}")
    if recipe.shopping_tips:
        lines += ["", "## Mẹo mua sắm", recipe.shopping_tips]
    return "\n".join(lines)


def print_generation(response: GeneratedRecipeResponse, debug: bool) -> None:
    if debug:
        console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]")
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print_json(data=response.model_dump(mode="json", by_alias=True))
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print()

    console.print(Markdown(format_recipe_markdown(response.recipe)))
    console.print()
    rag = f"{response.rag_recipes} similar recipes" if response.rag_used else "no similar recipes"
    stored = "stored" if response.stored else f"not stored ({response.store_skipped_reason})"
    console.print(f"[dim]{response.duration_ms}ms · RAG: {rag} · {stored}[/dim]")


async def run_query(
    text: str,
    debug: bool = False,
    search: bool = False,
    chat_user: Optional[str] = None,
    categories: Optional[list[str]] = None,
    language: Optional[str] = None,
    servings: Optional[int] = None,
    suggest: bool = False,
    style: Optional[str] = None,
) -> None:
    """Execute a single generation, search, suggestion or chat turn and print the result."""
    container = Container(use_chat_db=chat_user is not None)
    await container.initialize()
    try:
        if search:
            results = await container.recipes.search(text)
            if not results:
                console.print("[yellow]No similar recipes found[/yellow]")
            for idx, summary in enumerate(results, start=1):
                console.print(f"[bold]{idx}. {summary.dish_name}[/bold] [dim]({', '.join(summary.categories)})[/dim]")
                if summary.description:
                    console.print(f"   {summary.description}")
            return

        if suggest:
            response = await container.recipes.suggest_from_ingredients(
                text.split(","), cooking_style=style or "any", serving_size=servings, language=language or "vi"
            )
            if debug:
                console.print_json(data=response.meta.model_dump(mode="json"))
            console.print(Markdown(response.suggestions))
            meta = response.meta
            console.print(
                f"[dim]{meta.duration_ms}ms · {meta.similar_recipes_found} similar stored recipes · "
                f"serves {meta.serving_size}[/dim]"
            )
            return

        if chat_user is not None:
            reply = await container.chat.chat(chat_user, text)
            console.print(Markdown(reply.message))
            console.print(f"[dim]session {chat_user} · {reply.session_info.message_count} messages[/dim]")
            return

        payload = {"dish_name": text, "categories": categories or []}
        if language:
            payload["language"] = language
        if servings is not None:
            payload["serving_size"] = servings
        request = container.recipes.parse_request(payload)
        response = await container.recipes.generate(request)
        print_generation(response, debug)
    finally:
        await container.close()


def parse_args(argv: list[str]) -> dict:
    """Parse leading --flags; the remaining arguments form the query text."""
    options: dict = {"debug": False, "search": False, "suggest": False}
    idx = 0

    def value(flag: str) -> str:
        if idx + 1 >= len(argv):
            print(f"Error: {flag} flag requires a value")
            sys.exit(1)
        return argv[idx + 1]

    while idx < len(argv) and argv[idx].startswith("--"):
        flag = argv[idx]
        if flag == "--debug":
            options["debug"] = True
            idx += 1
        elif flag == "--search":
            options["search"] = True
            idx += 1
        elif flag == "--suggest":
            options["suggest"] = True
            idx += 1
        elif flag == "--style":
            options["style"] = value(flag)
            idx += 2
        elif flag == "--chat":
            options["chat_user"] = value(flag)
            idx += 2
        elif flag == "--categories":
            options["categories"] = [c.strip() for c in value(flag).split(",") if c.strip()]
            idx += 2
        elif flag == "--language":
            options["language"] = value(flag)
            idx += 2
        elif flag == "--servings":
            raw = value(flag)
            if not raw.isdigit():
                print(f"Error: --servings must be a number, got: {raw}")
                sys.exit(1)
            options["servings"] = int(raw)
            idx += 2
        else:
            print(f"Unknown flag: {flag}")
            sys.exit(1)

    if idx >= len(argv):
        print("Error: No query provided")
        print(USAGE)
        sys.exit(1)

    options["text"] = " ".join(argv[idx:])
    return options


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        print("")
        print("Examples:")
        print('  python query.py "Phở bò"')
        print('  python query.py --categories quick,easy --servings 2 "Trứng chiên"')
        print('  python query.py --search "gà"')
        print('  python query.py --suggest --style dry "thịt heo, trứng"')
        print('  python query.py --chat user-1 "Hôm nay nấu món gì?"')
        sys.exit(1)

    options = parse_args(sys.argv[1:])
    try:
        asyncio.run(run_query(**options))
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except ChefRAGError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)
