"""
Search tool: title search over the topic taxonomy (cache first, remote fallback).
Results are in cache order, or the store's order when the remote search answers.
"""

import asyncio
from typing import List, Optional

from hadith_library.api import open_taxonomy
from hadith_library.config import load_settings
from hadith_library.models import LibrarySettings, TopicRecord
from hadith_library.providers import create_provider


async def _search(query: str, limit: Optional[int], hydrate: bool, settings: LibrarySettings) -> List[TopicRecord]:
    provider = create_provider(settings)
    try:
        taxonomy = await open_taxonomy(provider, settings, hydrate=hydrate, prefetch=False)
        if hydrate:
            await taxonomy.wait_idle()
        return await taxonomy.search(query, limit)
    finally:
        await provider.aclose()


def run(
    query: str,
    limit: Optional[int] = None,
    hydrate: bool = False,
    settings: Optional[LibrarySettings] = None,
) -> List[TopicRecord]:
    """Search topic titles. With hydrate, the whole taxonomy is cached first so the remote fallback is rarely hit."""
    settings = settings or load_settings()
    return asyncio.run(_search(query, limit, hydrate, settings))
