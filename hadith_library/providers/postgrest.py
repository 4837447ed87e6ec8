"""Supabase / PostgREST provider (topics, books and hadiths tables over HTTP)."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from hadith_library.models import TOCEntry, TopicRecord
from hadith_library.providers.base import DataProvider, TransientFetchError

log = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
DEFAULT_TIMEOUT = 10.0

# Characters with meaning inside a PostgREST filter value.
_FILTER_RESERVED = str.maketrans({c: " " for c in "*,()%"})


def _parse_total(content_range: str | None) -> int:
    """'0-0/123' or '*/0' -> total row count."""
    if not content_range or "/" not in content_range:
        raise TransientFetchError(f"Missing row count in Content-Range: {content_range!r}")
    total = content_range.rsplit("/", 1)[1]
    try:
        return int(total)
    except ValueError as e:
        raise TransientFetchError(f"Unknown row count in Content-Range: {content_range!r}") from e


class PostgrestProvider(DataProvider):
    """Provider backed by a Supabase project's auto-generated REST API."""

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url:
            raise ValueError("Supabase URL not set. Set SUPABASE_URL or supabase_url in config.")
        if not api_key:
            raise ValueError("Supabase key not set. Set SUPABASE_ANON_KEY or supabase_key in config.")
        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/") + REST_PATH,
            headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "postgrest"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        params: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, f"/{table}", params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("PostgREST %s /%s failed: %s", method, table, e)
            raise TransientFetchError(f"{method} /{table} failed: {e}") from e
        return response

    async def _rows(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = await self._request("GET", table, params)
        try:
            data = response.json()
        except ValueError as e:
            raise TransientFetchError(f"/{table} returned invalid JSON") from e
        if not isinstance(data, list):
            raise TransientFetchError(f"/{table} returned {type(data).__name__}, expected a list")
        return data

    async def _topics(self, params: Dict[str, Any]) -> List[TopicRecord]:
        rows = await self._rows("topics", {"select": "*", **params})
        try:
            return [TopicRecord.model_validate(r) for r in rows]
        except ValidationError as e:
            raise TransientFetchError(f"Unexpected topic row: {e}") from e

    async def fetch_root_topics(self) -> List[TopicRecord]:
        return await self._topics({"parent_id": "is.null", "order": "id.asc"})

    async def fetch_child_count(self, topic_id: int) -> int:
        response = await self._request(
            "HEAD",
            "topics",
            {"select": "id", "parent_id": f"eq.{topic_id}"},
            headers={"Prefer": "count=exact"},
        )
        return _parse_total(response.headers.get("content-range"))

    async def fetch_children(self, parent_id: int) -> List[TopicRecord]:
        return await self._topics({"parent_id": f"eq.{parent_id}", "order": "id.asc"})

    async def fetch_topic_batch(self, offset: int, limit: int) -> List[TopicRecord]:
        return await self._topics(
            {
                "parent_id": "not.is.null",
                "order": "parent_id.asc,id.asc",
                "offset": offset,
                "limit": limit,
            }
        )

    async def search_topics(self, query: str, limit: int) -> List[TopicRecord]:
        term = " ".join(query.translate(_FILTER_RESERVED).split())
        if not term:
            return []
        return await self._topics({"title": f"ilike.*{term}*", "limit": limit})

    async def fetch_book_toc(self, book_id: str) -> Optional[List[TOCEntry]]:
        rows = await self._rows("books", {"select": "id,toc", "id": f"eq.{book_id}"})
        if not rows:
            return None
        toc = rows[0].get("toc")
        if not isinstance(toc, list):
            return None
        return [TOCEntry.model_validate(e) if isinstance(e, dict) else TOCEntry() for e in toc]

    async def fetch_book_pages(self, book_id: str) -> List[Dict[str, Any]]:
        return await self._rows(
            "hadiths",
            {"select": "part,page", "book_id": f"eq.{book_id}", "order": "id.asc"},
        )
