"""Tests for providers: registry, memory provider and the PostgREST client over a mock transport."""

import asyncio
import json

import httpx
import pytest

from hadith_library.models import LibrarySettings, TOCEntry, TopicRecord
from hadith_library.providers import (
    MemoryProvider,
    PostgrestProvider,
    TransientFetchError,
    create_provider,
    get_provider,
)
from hadith_library.providers.postgrest import _parse_total

from conftest import BOOKS, TOPIC_ROWS


# =============================================================================
# Registry
# =============================================================================

def test_get_provider_known_and_unknown():
    assert get_provider("memory") is MemoryProvider
    assert get_provider("postgrest") is PostgrestProvider
    with pytest.raises(KeyError, match="Unknown provider"):
        get_provider("sqlite")


def test_create_provider_memory_from_dump(data_file):
    provider = create_provider(LibrarySettings(provider="memory", data_path=data_file))
    roots = asyncio.run(provider.fetch_root_topics())
    assert provider.name == "memory"
    assert [t.id for t in roots] == [1, 2, 3]


def test_create_provider_memory_without_dump_is_empty():
    provider = create_provider(LibrarySettings(provider="memory"))
    assert asyncio.run(provider.fetch_root_topics()) == []


def test_create_provider_postgrest_requires_connection():
    with pytest.raises(ValueError, match="Supabase URL not set"):
        create_provider(LibrarySettings())
    with pytest.raises(ValueError, match="Supabase key not set"):
        create_provider(LibrarySettings(supabase_url="https://x.supabase.co"))


# =============================================================================
# Memory provider
# =============================================================================

def test_memory_topic_queries():
    provider = MemoryProvider(TOPIC_ROWS, BOOKS)

    async def scenario():
        return (
            await provider.fetch_child_count(2),
            await provider.fetch_child_count(3),
            [t.id for t in await provider.fetch_children(1)],
            [(t.parent_id, t.id) for t in await provider.fetch_topic_batch(2, 3)],
            [t.id for t in await provider.search_topics("FRIDAY", 10)],
        )

    count, leaf, children, batch, found = asyncio.run(scenario())

    assert (count, leaf) == (3, 0)
    assert children == [10, 11]
    assert batch == [(2, 20), (2, 21), (2, 22)]
    assert found == [21, 210]


def test_memory_book_queries():
    provider = MemoryProvider(books=BOOKS)

    async def scenario():
        return (
            await provider.fetch_book_toc("bukhari"),
            await provider.fetch_book_toc("muwatta"),
            await provider.fetch_book_toc("missing"),
            await provider.fetch_book_pages("muwatta"),
            await provider.fetch_book_pages("missing"),
        )

    toc, no_toc, missing, pages, no_pages = asyncio.run(scenario())

    assert toc[0] == TOCEntry(title="Revelation", level=1, anchor_id=1)
    assert no_toc is None and missing is None
    assert pages[0] == {"part": "1", "page": "10"}
    assert no_pages == []


def test_memory_from_json_errors(tmp_path):
    with pytest.raises(TransientFetchError, match="Could not load data dump"):
        MemoryProvider.from_json(tmp_path / "nope.json")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"topics": [{"title": "no id"}]}), encoding="utf-8")
    with pytest.raises(TransientFetchError):
        MemoryProvider.from_json(bad)


# =============================================================================
# PostgREST provider
# =============================================================================

def _postgrest(handler):
    return PostgrestProvider(
        "https://demo.supabase.co/",
        "anon-key",
        transport=httpx.MockTransport(handler),
    )


def test_parse_total():
    assert _parse_total("0-0/123") == 123
    assert _parse_total("*/0") == 0
    with pytest.raises(TransientFetchError):
        _parse_total(None)
    with pytest.raises(TransientFetchError):
        _parse_total("0-9/*")


def test_postgrest_roots_request_shape():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1, "title": "Faith", "parent_id": None, "level": 1}])

    provider = _postgrest(handler)
    roots = asyncio.run(provider.fetch_root_topics())

    request = seen[0]
    assert roots == [TopicRecord(id=1, title="Faith")]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/topics"
    assert request.url.params["parent_id"] == "is.null"
    assert request.url.params["order"] == "id.asc"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


def test_postgrest_child_count_uses_head():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, headers={"content-range": "*/3"})

    count = asyncio.run(_postgrest(handler).fetch_child_count(2))

    assert count == 3
    assert seen[0].method == "HEAD"
    assert seen[0].url.params["parent_id"] == "eq.2"
    assert seen[0].headers["prefer"] == "count=exact"


def test_postgrest_batch_and_search_params():
    seen = []

    def handler(request):
        seen.append(request.url.params)
        return httpx.Response(200, json=[])

    provider = _postgrest(handler)

    async def scenario():
        await provider.fetch_topic_batch(2000, 1000)
        await provider.search_topics("  friday (prayer)* ", 5)
        return await provider.search_topics("***", 5)

    empty = asyncio.run(scenario())

    batch, search = seen
    assert batch["parent_id"] == "not.is.null"
    assert batch["order"] == "parent_id.asc,id.asc"
    assert (batch["offset"], batch["limit"]) == ("2000", "1000")
    assert search["title"] == "ilike.*friday prayer*"
    assert search["limit"] == "5"
    assert empty == [] and len(seen) == 2


def test_postgrest_book_toc_and_pages():
    def handler(request):
        table = request.url.path.rsplit("/", 1)[1]
        book = request.url.params.get("id") or request.url.params.get("book_id")
        if table == "books":
            if book == "eq.bukhari":
                return httpx.Response(200, json=[{"id": "bukhari", "toc": BOOKS["bukhari"]["toc"]}])
            if book == "eq.muwatta":
                return httpx.Response(200, json=[{"id": "muwatta", "toc": None}])
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=BOOKS["muwatta"]["hadiths"])

    provider = _postgrest(handler)

    async def scenario():
        return (
            await provider.fetch_book_toc("bukhari"),
            await provider.fetch_book_toc("muwatta"),
            await provider.fetch_book_toc("missing"),
            await provider.fetch_book_pages("muwatta"),
        )

    toc, null_toc, missing, pages = asyncio.run(scenario())

    assert [e.anchor_id for e in toc] == [1, 1, 10, 12, 20]
    assert null_toc is None and missing is None
    assert len(pages) == 5


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"message": "not a list"}),
        httpx.Response(200, json=[{"title": "missing id"}]),
    ],
)
def test_postgrest_failures_raise_transient(response):
    provider = _postgrest(lambda request: response)
    with pytest.raises(TransientFetchError):
        asyncio.run(provider.fetch_children(1))


def test_postgrest_network_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransientFetchError):
        asyncio.run(_postgrest(handler).fetch_root_topics())
