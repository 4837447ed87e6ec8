"""
TOC tool: print a book's table of contents and, optionally, the section active at a hadith id.
"""

import asyncio
from typing import List, Optional

from hadith_library.api import load_book_toc
from hadith_library.config import load_settings
from hadith_library.core import format_tree_lines, iter_preorder
from hadith_library.models import BookTOC, LibrarySettings
from hadith_library.providers import create_provider
from hadith_library.toc_tree import AnchorIndex


async def _load(book_id: str, settings: LibrarySettings) -> BookTOC:
    provider = create_provider(settings)
    try:
        return await load_book_toc(provider, book_id)
    finally:
        await provider.aclose()


def run(
    book_id: str,
    depth: int = 2,
    position: Optional[int] = None,
    settings: Optional[LibrarySettings] = None,
) -> List[str]:
    """Load the book TOC and return outline lines; with position, mark and report the active section."""
    settings = settings or load_settings()
    toc = asyncio.run(_load(book_id, settings))
    if not toc.forest:
        return [f"No table of contents for book '{book_id}'."]
    active = AnchorIndex(toc.mappings).resolve(position)
    lines = format_tree_lines(toc.forest, max_depth=depth, active_id=active)
    if position is not None:
        label = next((n.label for n in iter_preorder(toc.forest) if n.id == active), None)
        lines.append(f"Active section at {position}: {label} ({active})" if label is not None else f"Active section at {position}: none")
    return lines
