#!/usr/bin/env python3
"""Rebuild text and embeddings for stored recipes.

Run after changing DISHNAME_WEIGHT, CATEGORY_WEIGHT, MAX_RECIPE_TEXT_LENGTH
or the embedding model, so stored vectors match new queries.

Usage:
    python reindex.py          # Show current settings only
    python reindex.py --yes    # Re-embed all recipes (one embedding call each)
    python reindex.py --yes --dish "Phở bò"   # Re-embed a single recipe
"""

import asyncio
import sys
from typing import Optional

from rich.console import Console

from chef_rag.models.models import ReindexResult
from chef_rag.providers.factory import create_embedding_provider
from chef_rag.store.vector_store import VectorStore
from chef_rag.utils.config import config
from chef_rag.utils.logger import logger

console = Console()


async def run_reindex(dish_name: Optional[str] = None) -> ReindexResult:
    """Reindex one dish (by name) or every stored recipe."""
    store = VectorStore(create_embedding_provider(config.EMBEDDING_PROVIDER, config), config)
    await store.initialize()
    try:
        if not store.is_available():
            console.print("[red]✗ Vector store not available. Configure VECTOR_STORE_URI.[/red]")
            sys.exit(1)
        if dish_name:
            found = await store.reindex_recipe(dish_name)
            return ReindexResult(total=1, success=1) if found else ReindexResult(total=1, failed=1)
        return await store.reindex_all()
    finally:
        await store.close()


def main(argv: list[str]) -> int:
    dish_name = None
    if "--dish" in argv:
        index = argv.index("--dish")
        if index + 1 >= len(argv):
            print("Error: --dish flag requires a dish name")
            return 1
        dish_name = argv[index + 1]

    console.print("[bold]Reindex settings[/bold]")
    console.print(f"  DISHNAME_WEIGHT        = {config.DISHNAME_WEIGHT}")
    console.print(f"  CATEGORY_WEIGHT        = {config.CATEGORY_WEIGHT}")
    console.print(f"  MAX_RECIPE_TEXT_LENGTH = {config.MAX_RECIPE_TEXT_LENGTH}")
    console.print(f"  EMBEDDING_PROVIDER     = {config.EMBEDDING_PROVIDER}")
    console.print()

    if "--yes" not in argv:
        console.print("[yellow]This re-embeds stored recipes. Re-run with --yes to proceed.[/yellow]")
        return 1

    result = asyncio.run(run_reindex(dish_name))
    console.print(f"Total: {result.total} · Success: {result.success} · Failed: {result.failed}")
    if result.failed:
        console.print(f"[red]✗ {result.failed} recipe(s) failed to reindex[/red]")
        return 1
    console.print("[green]✓ Reindex complete[/green]")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main(sys.argv[1:]))
    except KeyboardInterrupt:
        logger.info("\nReindex interrupted by user.")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Reindex failed: {e}", exc_info=True)
        sys.exit(1)
