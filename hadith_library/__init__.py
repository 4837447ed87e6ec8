"""
Hadith library core: book TOC forests and a cached topic taxonomy.

Use as a library:

    from hadith_library import build_forest, resolve_active_node
    forest, mappings = build_forest(book_toc_rows)
    active = resolve_active_node(mappings, current_hadith_id)

    from hadith_library import MemoryProvider, open_taxonomy
    taxonomy = await open_taxonomy(MemoryProvider.from_json("dump.json"))
    children = await taxonomy.get_children(42)

Or run the CLI:

    hadith-library toc <book_id> --at 1234
    hadith-library topics 42
"""

from hadith_library.api import load_book_toc, open_taxonomy
from hadith_library.models import (
    BookTOC,
    ChildLoadState,
    LibrarySettings,
    NodeMapping,
    TOCEntry,
    TopicRecord,
    TreeNode,
)
from hadith_library.providers import (
    DataProvider,
    MemoryProvider,
    PostgrestProvider,
    TransientFetchError,
    create_provider,
)
from hadith_library.taxonomy import TaxonomyCache, TaxonomyCacheManager
from hadith_library.toc_tree import (
    AnchorIndex,
    build_forest,
    build_part_page_forest,
    flatten_mappings,
    resolve_active_node,
)

__all__ = [
    "load_book_toc",
    "open_taxonomy",
    "BookTOC",
    "ChildLoadState",
    "LibrarySettings",
    "NodeMapping",
    "TOCEntry",
    "TopicRecord",
    "TreeNode",
    "DataProvider",
    "MemoryProvider",
    "PostgrestProvider",
    "TransientFetchError",
    "create_provider",
    "TaxonomyCache",
    "TaxonomyCacheManager",
    "AnchorIndex",
    "build_forest",
    "build_part_page_forest",
    "flatten_mappings",
    "resolve_active_node",
]
