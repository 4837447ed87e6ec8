"""
Build a nested TOC forest from a book's flat, leveled TOC array.

Pipeline:
  1. Coerce raw rows (stored JSON: tit/lvl/id) into TOCEntry; bad levels become 1
  2. Nest in one pass with a "last node at level L" table: an entry attaches to
     the nearest shallower level that currently holds a node, else becomes a root
  3. Freeze drafts into TreeNodes (id = toc-<anchor>)
  4. Flatten pre-order into NodeMappings for active-node lookup

Key principle: document order is the only parent signal.  Cost is O(n * L) with
L the deepest level seen; never scan backwards over earlier entries.
"""

import bisect
import logging
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from pydantic import ValidationError

from hadith_library.core import iter_preorder
from hadith_library.models import (
    NodeMapping,
    PagePayload,
    PartPayload,
    TocPayload,
    TOCEntry,
    TreeNode,
)

log = logging.getLogger(__name__)

NO_PART_LABEL = "بدون جزء"
NO_PAGE_LABEL = "بدون صفحة"
PAGE_LABEL_FORMAT = "صفحة {page}"


class _Draft:
    __slots__ = ("entry", "node_id", "children")

    def __init__(self, entry: TOCEntry, node_id: str):
        self.entry = entry
        self.node_id = node_id
        self.children: list["_Draft"] = []


def _coerce_entry(raw: Any) -> TOCEntry:
    if isinstance(raw, TOCEntry):
        return raw
    if isinstance(raw, Mapping):
        try:
            return TOCEntry.model_validate(raw)
        except ValidationError as e:
            log.debug("Repairing malformed TOC row %r: %s", raw, e)
    return TOCEntry()


def _node_ids(entries: Sequence[TOCEntry]) -> List[str]:
    """Deterministic ids: toc-<anchor>, with -<k> for the k-th repeat of an anchor."""
    seen: dict[str, int] = {}
    ids = []
    for idx, entry in enumerate(entries):
        base = f"toc-{entry.anchor_id}" if entry.anchor_id is not None else f"toc-n{idx}"
        k = seen.get(base, 0)
        seen[base] = k + 1
        ids.append(base if k == 0 else f"{base}-{k}")
    return ids


def _freeze(roots: Sequence[_Draft]) -> List[TreeNode]:
    """Convert drafts to TreeNodes children-first with an explicit stack; depth is unbounded."""
    frozen: dict[int, TreeNode] = {}
    stack = [(d, False) for d in reversed(roots)]
    while stack:
        draft, children_done = stack.pop()
        if not children_done:
            stack.append((draft, True))
            stack.extend((c, False) for c in reversed(draft.children))
            continue
        frozen[id(draft)] = TreeNode(
            id=draft.node_id,
            label=draft.entry.title,
            payload=TocPayload(anchor_id=draft.entry.anchor_id, level=draft.entry.level),
            children=[frozen.pop(id(c)) for c in draft.children],
            has_children=bool(draft.children),
        )
    return [frozen.pop(id(d)) for d in roots]


def build_forest(entries: Iterable[Any]) -> Tuple[List[TreeNode], List[NodeMapping]]:
    """
    Convert TOC entries (TOCEntry or raw dicts, in document order) into (forest, mappings).

    Never raises on malformed rows: they are repaired and kept, attaching to the forest
    root when no shallower ancestor exists.
    """
    toc = [_coerce_entry(raw) for raw in entries]
    if not toc:
        return [], []

    ids = _node_ids(toc)
    roots: list[_Draft] = []
    last_at_level: dict[int, _Draft] = {}
    deepest = 0

    for entry, node_id in zip(toc, ids):
        level = entry.level
        draft = _Draft(entry, node_id)
        parent = None
        if level > 1:
            # Only levels that have been seen can hold a node.
            for lvl in range(min(level - 1, deepest), 0, -1):
                parent = last_at_level.get(lvl)
                if parent is not None:
                    break
        if parent is not None:
            parent.children.append(draft)
        else:
            roots.append(draft)
        last_at_level[level] = draft
        deepest = max(deepest, level)

    forest = _freeze(roots)
    mappings = flatten_mappings(forest)
    log.debug("Built TOC forest: %d entries, %d roots, depth %d", len(toc), len(forest), deepest)
    return forest, mappings


def flatten_mappings(forest: Sequence[TreeNode]) -> List[NodeMapping]:
    """Pre-order (node_id, anchor_id) pairs for every node whose payload carries an anchor."""
    mappings = []
    for node in iter_preorder(forest):
        anchor = getattr(node.payload, "anchor_id", None)
        if isinstance(anchor, int):
            mappings.append(NodeMapping(node_id=node.id, anchor_id=anchor))
    return mappings


def resolve_active_node(mappings: Sequence[NodeMapping], position: int | None) -> str | int | None:
    """
    Return the node whose anchor is the largest value <= position.

    Equal anchors keep the first mapping in pre-order (replacement only on strictly greater).
    None when position is None or precedes every anchor.
    """
    if position is None:
        return None
    best: NodeMapping | None = None
    for m in mappings:
        if m.anchor_id <= position and (best is None or m.anchor_id > best.anchor_id):
            best = m
    return best.node_id if best is not None else None


class AnchorIndex:
    """Sorted view of mappings answering resolve_active_node in O(log m)."""

    def __init__(self, mappings: Sequence[NodeMapping]):
        order = sorted(range(len(mappings)), key=lambda i: (mappings[i].anchor_id, i))
        self._anchors = [mappings[i].anchor_id for i in order]
        self._node_ids = [mappings[i].node_id for i in order]

    def __len__(self) -> int:
        return len(self._anchors)

    def resolve(self, position: int | None) -> str | int | None:
        if position is None:
            return None
        idx = bisect.bisect_right(self._anchors, position)
        if idx == 0:
            return None
        first = bisect.bisect_left(self._anchors, self._anchors[idx - 1])
        return self._node_ids[first]


def build_part_page_forest(rows: Iterable[Mapping[str, Any]]) -> List[TreeNode]:
    """
    Fallback TOC for books without a stored TOC: group distinct (part, page) values
    in first-seen order. Nodes carry part/page payloads and no anchors.
    """
    parts: dict[str, dict[str, None]] = {}
    for row in rows:
        part = str(row.get("part") or NO_PART_LABEL)
        page = str(row.get("page") or NO_PAGE_LABEL)
        parts.setdefault(part, {})[page] = None

    forest = []
    for idx, (part, pages) in enumerate(parts.items()):
        children = [
            TreeNode(
                id=f"page-{idx}-{pidx}",
                label=PAGE_LABEL_FORMAT.format(page=page),
                payload=PagePayload(value=page, part=part),
                children=[],
            )
            for pidx, page in enumerate(pages)
        ]
        forest.append(
            TreeNode(
                id=f"part-{idx}",
                label=part,
                payload=PartPayload(value=part),
                children=children,
                has_children=bool(children),
            )
        )
    return forest
