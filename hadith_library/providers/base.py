"""Abstract interface for taxonomy and book data providers. Implement this to plug in a new store."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from hadith_library.models import TOCEntry, TopicRecord


class TransientFetchError(Exception):
    """A provider call failed (transport, HTTP status, or unreadable payload). Callers degrade to empty results."""


class DataProvider(ABC):
    """Async interface every provider must implement. All methods raise TransientFetchError on failure."""

    @abstractmethod
    async def fetch_root_topics(self) -> List[TopicRecord]:
        """Topics with parent_id NULL, ordered by id."""
        ...

    @abstractmethod
    async def fetch_child_count(self, topic_id: int) -> int:
        """Number of direct children of topic_id."""
        ...

    @abstractmethod
    async def fetch_children(self, parent_id: int) -> List[TopicRecord]:
        """Direct children of parent_id, ordered by id."""
        ...

    @abstractmethod
    async def fetch_topic_batch(self, offset: int, limit: int) -> List[TopicRecord]:
        """Slice of all non-root topics ordered by (parent_id, id)."""
        ...

    @abstractmethod
    async def search_topics(self, query: str, limit: int) -> List[TopicRecord]:
        """Case-insensitive substring match on title."""
        ...

    @abstractmethod
    async def fetch_book_toc(self, book_id: str) -> Optional[List[TOCEntry]]:
        """Stored TOC for a book in document order, or None when the book has none."""
        ...

    @abstractmethod
    async def fetch_book_pages(self, book_id: str) -> List[Dict[str, Any]]:
        """Rows of {"part", "page"} for a book's hadiths in id order (TOC fallback)."""
        ...

    async def aclose(self) -> None:
        """Release transport resources. No-op by default."""
        return None

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g. 'postgrest')."""
        ...
