"""
Shared fixtures: a small topic taxonomy, a provider that records (and can fail) calls,
and config isolation so no real .hadith_library.json or Supabase env leaks in.
"""

import json
from collections import Counter

import pytest

from hadith_library.models import TopicRecord
from hadith_library.providers import MemoryProvider, TransientFetchError

# 1 Faith ─ 10 Pillars of faith ─ 100 Testimony, 101 Charity
#         └ 11 Belief in angels
# 2 Prayer ─ 20 Times of prayer, 21 Friday prayer ─ 210 Friday sermon, 22 Prayer while travelling
# 3 Fasting (leaf)
TOPIC_ROWS = [
    {"id": 1, "title": "Faith", "parent_id": None, "level": 1},
    {"id": 2, "title": "Prayer", "parent_id": None, "level": 1},
    {"id": 3, "title": "Fasting", "parent_id": None, "level": 1},
    {"id": 10, "title": "Pillars of faith", "parent_id": 1, "level": 2},
    {"id": 11, "title": "Belief in angels", "parent_id": 1, "level": 2},
    {"id": 20, "title": "Times of prayer", "parent_id": 2, "level": 2},
    {"id": 21, "title": "Friday prayer", "parent_id": 2, "level": 2},
    {"id": 22, "title": "Prayer while travelling", "parent_id": 2, "level": 2},
    {"id": 100, "title": "Testimony", "parent_id": 10, "level": 3},
    {"id": 101, "title": "Charity", "parent_id": 10, "level": 3},
    {"id": 210, "title": "Friday sermon", "parent_id": 21, "level": 3},
]

BOOKS = {
    "bukhari": {
        "toc": [
            {"tit": "Revelation", "lvl": 1, "sub": 0, "id": 1},
            {"tit": "How revelation began", "lvl": 2, "sub": 0, "id": 1},
            {"tit": "Belief", "lvl": 1, "sub": 0, "id": 10},
            {"tit": "Islam is built on five", "lvl": 2, "sub": 0, "id": 12},
            {"tit": "Matters of faith", "lvl": 2, "sub": 0, "id": 20},
        ],
        "hadiths": [],
    },
    "muwatta": {
        "toc": None,
        "hadiths": [
            {"part": "1", "page": "10"},
            {"part": "1", "page": "10"},
            {"part": "1", "page": "11"},
            {"part": "2", "page": "40"},
            {"part": None, "page": None},
        ],
    },
}


class RecordingProvider(MemoryProvider):
    """MemoryProvider that counts calls per (method, argument) and fails the methods named in fail."""

    def __init__(self, topics=TOPIC_ROWS, books=None, fail=()):
        super().__init__(topics, books if books is not None else BOOKS)
        self.calls = Counter()
        self.fail = set(fail)

    def _record(self, method, arg=None):
        self.calls[(method, arg)] += 1
        if method in self.fail:
            raise TransientFetchError(f"{method} unavailable")

    def total(self, method):
        return sum(n for (m, _), n in self.calls.items() if m == method)

    async def fetch_root_topics(self):
        self._record("fetch_root_topics")
        return await super().fetch_root_topics()

    async def fetch_child_count(self, topic_id):
        self._record("fetch_child_count", topic_id)
        return await super().fetch_child_count(topic_id)

    async def fetch_children(self, parent_id):
        self._record("fetch_children", parent_id)
        return await super().fetch_children(parent_id)

    async def fetch_topic_batch(self, offset, limit):
        self._record("fetch_topic_batch", offset)
        return await super().fetch_topic_batch(offset, limit)

    async def search_topics(self, query, limit):
        self._record("search_topics", query)
        return await super().search_topics(query, limit)

    async def fetch_book_toc(self, book_id):
        self._record("fetch_book_toc", book_id)
        return await super().fetch_book_toc(book_id)

    async def fetch_book_pages(self, book_id):
        self._record("fetch_book_pages", book_id)
        return await super().fetch_book_pages(book_id)


@pytest.fixture
def topic_rows():
    return [TopicRecord.model_validate(r) for r in TOPIC_ROWS]


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def data_file(tmp_path):
    """JSON dump usable by the memory provider and the CLI --data option."""
    path = tmp_path / "library.json"
    path.write_text(json.dumps({"topics": TOPIC_ROWS, "books": BOOKS}, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config at a temp file and clear provider env vars."""
    for name in (
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "NEXT_PUBLIC_SUPABASE_URL",
        "NEXT_PUBLIC_SUPABASE_ANON_KEY",
        "HADITH_LIBRARY_PROVIDER",
        "HADITH_LIBRARY_DATA",
    ):
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / ".hadith_library.json"
    monkeypatch.setenv("HADITH_LIBRARY_CONFIG", str(config_path))
    monkeypatch.chdir(tmp_path)
    return config_path
