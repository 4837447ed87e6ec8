"""In-process provider over topic rows and book TOCs; loads from a JSON dump for offline use."""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from hadith_library.models import TOCEntry, TopicRecord
from hadith_library.providers.base import DataProvider, TransientFetchError


class MemoryProvider(DataProvider):
    """
    Serves the same queries as the PostgREST provider from Python lists.

    Dump format (JSON):
        {"topics": [{"id", "title", "parent_id", "level"}, ...],
         "books": {"<book_id>": {"toc": [{"tit", "lvl", "id"}, ...] | null,
                                 "hadiths": [{"part", "page"}, ...]}}}
    """

    def __init__(
        self,
        topics: Iterable[TopicRecord | Dict[str, Any]] = (),
        books: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self._topics = sorted(
            (t if isinstance(t, TopicRecord) else TopicRecord.model_validate(t) for t in topics),
            key=lambda t: t.id,
        )
        self._books = dict(books or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "MemoryProvider":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls(data.get("topics", []), data.get("books", {}))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise TransientFetchError(f"Could not load data dump {path}: {e}") from e

    @property
    def name(self) -> str:
        return "memory"

    async def fetch_root_topics(self) -> List[TopicRecord]:
        return [t for t in self._topics if t.parent_id is None]

    async def fetch_child_count(self, topic_id: int) -> int:
        return sum(1 for t in self._topics if t.parent_id == topic_id)

    async def fetch_children(self, parent_id: int) -> List[TopicRecord]:
        return [t for t in self._topics if t.parent_id == parent_id]

    async def fetch_topic_batch(self, offset: int, limit: int) -> List[TopicRecord]:
        rows = sorted(
            (t for t in self._topics if t.parent_id is not None),
            key=lambda t: (t.parent_id, t.id),
        )
        return rows[offset:offset + limit]

    async def search_topics(self, query: str, limit: int) -> List[TopicRecord]:
        needle = query.casefold()
        return [t for t in self._topics if needle in t.title.casefold()][:limit]

    async def fetch_book_toc(self, book_id: str) -> Optional[List[TOCEntry]]:
        book = self._books.get(book_id)
        if not book or not isinstance(book.get("toc"), list):
            return None
        return [TOCEntry.model_validate(e) if isinstance(e, dict) else TOCEntry() for e in book["toc"]]

    async def fetch_book_pages(self, book_id: str) -> List[Dict[str, Any]]:
        book = self._books.get(book_id) or {}
        return [
            {"part": h.get("part"), "page": h.get("page")}
            for h in book.get("hadiths", [])
        ]
