"""
Topics tool: browse the topic taxonomy through the cache manager, or hydrate it fully.
"""

import asyncio
from typing import Dict, List, Optional

from hadith_library.api import open_taxonomy
from hadith_library.config import load_settings
from hadith_library.core import format_tree_lines
from hadith_library.models import LibrarySettings
from hadith_library.providers import create_provider
from hadith_library.taxonomy import TaxonomyCacheManager


async def _expand(taxonomy: TaxonomyCacheManager, topic_ids: List[int], depth: int) -> None:
    """Load children level by level down to depth (1 = just topic_ids' children)."""
    frontier = topic_ids
    for _ in range(depth):
        results = await asyncio.gather(*(taxonomy.get_children(i) for i in frontier))
        frontier = [node.id for nodes in results for node in nodes if node.has_children]
        if not frontier:
            break


async def _browse(parent_id: Optional[int], depth: int, settings: LibrarySettings) -> List[str]:
    provider = create_provider(settings)
    try:
        taxonomy = await open_taxonomy(provider, settings, hydrate=False, prefetch=False)
        if parent_id is None:
            # Roots are already the first level.
            start = [i for i in taxonomy.cache.root_ids if taxonomy.cache.child_count_of.get(i, 0) > 0]
            levels = depth - 1
        else:
            start, levels = [parent_id], depth
        await _expand(taxonomy, start, levels)
        nodes = taxonomy.build_tree_view(parent_id)
    finally:
        await provider.aclose()
    return format_tree_lines(nodes, max_depth=depth)


def run(
    parent_id: Optional[int] = None,
    depth: int = 1,
    settings: Optional[LibrarySettings] = None,
) -> List[str]:
    """Return outline lines for the roots (parent_id None) or the children of parent_id."""
    settings = settings or load_settings()
    lines = asyncio.run(_browse(parent_id, depth, settings))
    return lines or ["No topics found."]


async def _hydrate(settings: LibrarySettings) -> Dict[str, int]:
    provider = create_provider(settings)
    try:
        taxonomy = await open_taxonomy(provider, settings, hydrate=True, prefetch=False)
        await taxonomy.wait_idle()
    finally:
        await provider.aclose()
    cache = taxonomy.cache
    return {
        "roots": len(cache.root_ids),
        "topics": len(cache.nodes),
        "parents": len(cache.children_of),
    }


def hydrate(settings: Optional[LibrarySettings] = None) -> Dict[str, int]:
    """Load roots, run background hydration to completion and return cache sizes."""
    settings = settings or load_settings()
    return asyncio.run(_hydrate(settings))
