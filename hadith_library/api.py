"""
Public API: open book TOCs and topic taxonomies from code.

    from hadith_library import load_book_toc, open_taxonomy
    toc = await load_book_toc(provider, "bukhari")
    taxonomy = await open_taxonomy(provider)
"""

import logging

from hadith_library.models import BookTOC, LibrarySettings
from hadith_library.providers.base import DataProvider, TransientFetchError
from hadith_library.taxonomy import TaxonomyCacheManager
from hadith_library.toc_tree import build_forest, build_part_page_forest

log = logging.getLogger(__name__)


async def load_book_toc(provider: DataProvider, book_id: str) -> BookTOC:
    """
    Build a book's TOC forest (library entry point).

    Uses the stored TOC when the book has one; otherwise groups the book's hadiths by
    part/page (no anchors, so no active-node mappings). Fetch failures give an empty
    forest instead of raising.

    Args:
        provider: Data provider to read the book from.
        book_id: Book identifier.

    Returns:
        BookTOC with forest, mappings and the source that produced them.
    """
    try:
        entries = await provider.fetch_book_toc(book_id)
        if entries is not None:
            forest, mappings = build_forest(entries)
            return BookTOC(book_id=book_id, forest=forest, mappings=mappings, source="toc")
        rows = await provider.fetch_book_pages(book_id)
    except TransientFetchError as e:
        log.warning("Loading TOC for book %s failed: %s", book_id, e)
        return BookTOC(book_id=book_id)
    forest = build_part_page_forest(rows)
    return BookTOC(book_id=book_id, forest=forest, source="pages" if forest else "empty")


async def open_taxonomy(
    provider: DataProvider,
    settings: LibrarySettings | None = None,
    *,
    hydrate: bool = True,
    **kwargs,
) -> TaxonomyCacheManager:
    """
    Create a taxonomy cache manager and load its roots.

    Args:
        provider: Data provider for topic rows.
        settings: Cache tuning; defaults when None.
        hydrate: Schedule background hydration after the roots load.
        **kwargs: Passed to TaxonomyCacheManager (e.g. prefetch=False).

    Returns:
        A ready TaxonomyCacheManager (roots empty if loading failed).
    """
    manager = TaxonomyCacheManager.from_settings(provider, settings or LibrarySettings(), **kwargs)
    await manager.initialize_roots(hydrate=hydrate)
    return manager
