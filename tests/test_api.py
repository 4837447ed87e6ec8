"""Tests for the library entry points load_book_toc and open_taxonomy."""

import asyncio

from hadith_library import load_book_toc, open_taxonomy
from hadith_library.core import count_nodes
from hadith_library.models import LibrarySettings, PagePayload, PartPayload
from hadith_library.toc_tree import NO_PAGE_LABEL, NO_PART_LABEL, resolve_active_node

from conftest import TOPIC_ROWS, RecordingProvider


def test_stored_toc_builds_forest_and_mappings(provider):
    toc = asyncio.run(load_book_toc(provider, "bukhari"))

    assert toc.source == "toc"
    assert [n.id for n in toc.forest] == ["toc-1", "toc-10"]
    assert [c.id for c in toc.forest[0].children] == ["toc-1-1"]
    assert [c.label for c in toc.forest[1].children] == ["Islam is built on five", "Matters of faith"]
    assert [(m.node_id, m.anchor_id) for m in toc.mappings] == [
        ("toc-1", 1),
        ("toc-1-1", 1),
        ("toc-10", 10),
        ("toc-12", 12),
        ("toc-20", 20),
    ]
    assert resolve_active_node(toc.mappings, 1) == "toc-1"
    assert resolve_active_node(toc.mappings, 11) == "toc-10"
    assert provider.calls[("fetch_book_pages", "bukhari")] == 0


def test_missing_toc_falls_back_to_part_page_grouping(provider):
    toc = asyncio.run(load_book_toc(provider, "muwatta"))

    assert toc.source == "pages"
    assert toc.mappings == []
    assert [n.label for n in toc.forest] == ["1", "2", NO_PART_LABEL]
    first = toc.forest[0]
    assert isinstance(first.payload, PartPayload)
    assert [c.label for c in first.children] == ["صفحة 10", "صفحة 11"]
    assert first.children[0].payload == PagePayload(value="10", part="1")
    assert toc.forest[2].children[0].payload.value == NO_PAGE_LABEL
    assert count_nodes(toc.forest) == 7


def test_unknown_book_is_empty(provider):
    toc = asyncio.run(load_book_toc(provider, "missing"))

    assert toc.source == "empty"
    assert toc.forest == [] and toc.mappings == []


def test_fetch_failure_gives_empty_toc():
    provider = RecordingProvider(fail={"fetch_book_pages"})

    toc = asyncio.run(load_book_toc(provider, "muwatta"))

    assert toc.book_id == "muwatta"
    assert toc.source == "empty" and toc.forest == []


def test_open_taxonomy_loads_roots_and_hydrates(provider):
    async def scenario():
        taxonomy = await open_taxonomy(provider, LibrarySettings(batch_size=4, batch_delay=0))
        roots = taxonomy.build_tree_view(None)
        await taxonomy.wait_idle()
        return taxonomy, roots

    taxonomy, roots = asyncio.run(scenario())

    assert taxonomy.ready is True
    assert [n.label for n in roots] == ["Faith", "Prayer", "Fasting"]
    assert len(taxonomy.cache.nodes) == len(TOPIC_ROWS)
    assert taxonomy.batch_size == 4


def test_open_taxonomy_without_hydration(provider):
    async def scenario():
        return await open_taxonomy(provider, hydrate=False, prefetch=False)

    taxonomy = asyncio.run(scenario())

    assert taxonomy.background_task is None
    assert taxonomy.prefetch is False
    assert provider.total("fetch_topic_batch") == 0
