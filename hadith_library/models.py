"""Data models for TOC entries, topic records, tree nodes and settings."""

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TOCEntry(BaseModel):
    """One row of a book's stored table of contents (document order)."""

    title: str = Field(default="", alias="tit", description="Section title")
    level: int = Field(default=1, alias="lvl", description="Nesting level (1 = top)")
    anchor_id: int | None = Field(
        default=None,
        alias="id",
        description="Hadith row id where this section starts",
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("level", mode="before")
    @classmethod
    def _coerce_level(cls, value: Any) -> int:
        # Missing or garbage levels flatten to the top instead of failing the book.
        try:
            level = int(value)
        except (TypeError, ValueError, OverflowError):
            return 1
        return level if level >= 1 else 1

    @field_validator("anchor_id", mode="before")
    @classmethod
    def _coerce_anchor(cls, value: Any) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return None


class TopicRecord(BaseModel):
    """A row of the topics table."""

    id: int
    title: str = ""
    parent_id: int | None = None
    level: int = 1

    model_config = ConfigDict(extra="ignore", frozen=True)


class TocPayload(BaseModel):
    type: Literal["toc"] = "toc"
    anchor_id: int | None = None
    level: int = 1

    model_config = ConfigDict(frozen=True)


class TopicPayload(BaseModel):
    type: Literal["topic"] = "topic"
    topic: TopicRecord

    model_config = ConfigDict(frozen=True)


class PartPayload(BaseModel):
    type: Literal["part"] = "part"
    value: str

    model_config = ConfigDict(frozen=True)


class PagePayload(BaseModel):
    type: Literal["page"] = "page"
    value: str
    part: str

    model_config = ConfigDict(frozen=True)


Payload = Annotated[
    Union[TocPayload, TopicPayload, PartPayload, PagePayload],
    Field(discriminator="type"),
]


class TreeNode(BaseModel):
    """
    Node shared by book TOC forests and the topic taxonomy view.

    children is None with has_children=True marks a subtree that is not loaded yet;
    children == [] with has_children=False is a real leaf.
    """

    id: str | int
    label: str
    payload: Payload
    children: list["TreeNode"] | None = None
    has_children: bool = False
    is_loading: bool = False

    model_config = ConfigDict(frozen=True)


class NodeMapping(BaseModel):
    """Pre-order pair used to find the active TOC node for a document position."""

    node_id: str | int
    anchor_id: int

    model_config = ConfigDict(frozen=True)


class BookTOC(BaseModel):
    """Result of opening a book's table of contents."""

    book_id: str
    forest: list[TreeNode] = Field(default_factory=list)
    mappings: list[NodeMapping] = Field(default_factory=list)
    source: Literal["toc", "pages", "empty"] = Field(
        default="empty",
        description="toc: stored TOC column; pages: part/page grouping fallback; empty: nothing loaded",
    )


class ChildLoadState(str, Enum):
    """Child-loading status of a single topic."""

    UNKNOWN = "unknown"
    LOADING = "loading"
    LOADED = "loaded"


class LibrarySettings(BaseModel):
    """Resolved runtime settings (config file + environment)."""

    provider: str = Field(default="postgrest", description="Data provider: postgrest or memory")
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_key: str | None = Field(default=None, description="Supabase anon or service key")
    data_path: Path | None = Field(default=None, description="JSON dump for the memory provider")
    batch_size: int = Field(default=1000, ge=1, description="Rows per background hydration batch")
    batch_delay: float = Field(default=0.05, ge=0, description="Seconds to yield between batches")
    prefetch_delay: float = Field(default=0.1, ge=0, description="Stagger step for neighbor prefetch")
    search_threshold: int = Field(default=10, ge=0, description="Cache hits needed to skip remote search")
    search_limit: int = Field(default=50, ge=1, description="Max search results")
    request_timeout: float = Field(default=10.0, gt=0, description="HTTP timeout in seconds")
