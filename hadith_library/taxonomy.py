"""
Topic taxonomy cache: instant expansion of known subtrees, on-demand loading of
unknown ones, background hydration of the whole table and neighbor prefetch.

Lifecycle:
  1. initialize_roots(): roots + their child counts, then the cache is ready
  2. background_populate(): all non-root rows in (parent_id, id) batches
  3. get_children() / prefetch_neighbors(): fill gaps the user reaches first
  4. build_tree_view(): pure projection of the current state for rendering

Every provider call is an await point.  Each merge into the shared maps runs
without awaiting, so a reader suspended elsewhere never sees half a merge.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from hadith_library.models import (
    ChildLoadState,
    LibrarySettings,
    TopicPayload,
    TopicRecord,
    TreeNode,
)
from hadith_library.providers.base import DataProvider, TransientFetchError

log = logging.getLogger(__name__)


@dataclass
class TaxonomyCache:
    """Session-scoped taxonomy state. Grows monotonically; nothing is evicted."""

    nodes: Dict[int, TopicRecord] = field(default_factory=dict)
    children_of: Dict[int, List[int]] = field(default_factory=dict)
    child_count_of: Dict[int, int] = field(default_factory=dict)
    root_ids: List[int] = field(default_factory=list)

    def has_complete_children(self, topic_id: int) -> bool:
        """True when the cached child list covers every known child."""
        ids = self.children_of.get(topic_id)
        if ids is None:
            return False
        return len(ids) >= self.child_count_of.get(topic_id, len(ids))

    def merge_children(self, parent_id: int, records: Iterable[TopicRecord], *, complete: bool) -> List[int]:
        """
        Merge child rows of one parent. Ids already present are not duplicated.
        When complete, the merged length becomes the authoritative child count.
        """
        merged = set(self.children_of.get(parent_id, ()))
        for record in records:
            self.nodes[record.id] = record
            merged.add(record.id)
        ids = sorted(merged)
        self.children_of[parent_id] = ids
        if complete:
            self.child_count_of[parent_id] = max(len(ids), self.child_count_of.get(parent_id, 0))
        return ids


class TaxonomyCacheManager:
    """
    Answers tree-navigation queries over the topic taxonomy from a TaxonomyCache,
    delegating misses to a DataProvider. One instance per browsing session.
    """

    def __init__(
        self,
        provider: DataProvider,
        *,
        batch_size: int = 1000,
        batch_delay: float = 0.05,
        prefetch_delay: float = 0.1,
        search_threshold: int = 10,
        search_limit: int = 50,
        prefetch: bool = True,
    ):
        self.provider = provider
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.prefetch_delay = prefetch_delay
        self.search_threshold = search_threshold
        self.search_limit = search_limit
        self.prefetch = prefetch

        self.cache = TaxonomyCache()
        self.ready = False
        self.loading_ids: Set[int] = set()
        self.background_task: Optional[asyncio.Task] = None
        self._prefetched: Set[int] = set()
        self._inflight: Dict[int, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, provider: DataProvider, settings: LibrarySettings, **kwargs) -> "TaxonomyCacheManager":
        return cls(
            provider,
            batch_size=settings.batch_size,
            batch_delay=settings.batch_delay,
            prefetch_delay=settings.prefetch_delay,
            search_threshold=settings.search_threshold,
            search_limit=settings.search_limit,
            **kwargs,
        )

    def _spawn(self, coro) -> asyncio.Task:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Roots and hydration
    # ------------------------------------------------------------------

    async def initialize_roots(self, *, hydrate: bool = True) -> bool:
        """
        Load root topics and their child counts. Returns False on failure, leaving an
        empty root list. Either way the cache is ready afterwards. On success the
        background hydration is scheduled once (unless hydrate=False).
        """
        try:
            roots = await self.provider.fetch_root_topics()
            counts = await asyncio.gather(*(self.provider.fetch_child_count(t.id) for t in roots))
        except TransientFetchError as e:
            log.warning("Loading root topics failed: %s", e)
            self.ready = True
            return False

        for topic, count in zip(roots, counts):
            self.cache.nodes[topic.id] = topic
            self.cache.child_count_of[topic.id] = count
        self.cache.root_ids = [t.id for t in roots]
        self.ready = True
        log.info("Loaded %d root topics", len(roots))

        if hydrate and self.background_task is None:
            self.background_task = self._spawn(self.background_populate())
        return True

    def _merge_batch(self, rows: List[TopicRecord]) -> None:
        by_parent: Dict[int, List[TopicRecord]] = {}
        for row in rows:
            if row.parent_id is None:
                continue
            by_parent.setdefault(row.parent_id, []).append(row)
        for parent_id, children in by_parent.items():
            self.cache.merge_children(parent_id, children, complete=True)

    async def background_populate(self) -> int:
        """
        Stream every non-root topic into the cache. Returns the number of rows merged.

        Rows arrive ordered by (parent_id, id); the trailing parent group of a full
        batch may continue in the next one, so it is held back until the next batch
        arrives. A child list in the cache is therefore absent or complete.
        """
        offset = 0
        merged = 0
        pending: List[TopicRecord] = []
        while True:
            try:
                fetched = await self.provider.fetch_topic_batch(offset, self.batch_size)
            except TransientFetchError as e:
                log.warning("Background topic batch at offset %d failed: %s", offset, e)
                # The held group may be missing rows; leave it to on-demand loading.
                pending = []
                break

            rows = pending + fetched
            last_batch = len(fetched) < self.batch_size
            if last_batch:
                pending = []
            else:
                tail_parent = rows[-1].parent_id
                split = len(rows)
                while split > 0 and rows[split - 1].parent_id == tail_parent:
                    split -= 1
                rows, pending = rows[:split], rows[split:]

            self._merge_batch(rows)
            merged += len(rows)
            log.debug("Merged topic batch at offset %d (%d rows, %d held)", offset, len(rows), len(pending))

            if last_batch:
                break
            offset += self.batch_size
            await asyncio.sleep(self.batch_delay)

        log.info("Background hydration finished: %d topics merged", merged)
        return merged

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def child_state(self, topic_id: int) -> ChildLoadState:
        if topic_id in self.loading_ids:
            return ChildLoadState.LOADING
        if topic_id in self.cache.children_of:
            return ChildLoadState.LOADED
        return ChildLoadState.UNKNOWN

    def _node(self, topic: TopicRecord, children: Optional[List[TreeNode]] = None) -> TreeNode:
        return TreeNode(
            id=topic.id,
            label=topic.title,
            payload=TopicPayload(topic=topic),
            children=children,
            has_children=self.cache.child_count_of.get(topic.id, 0) > 0,
            is_loading=topic.id in self.loading_ids,
        )

    def _nodes_for(self, ids: Iterable[int]) -> List[TreeNode]:
        return [self._node(self.cache.nodes[i]) for i in ids if i in self.cache.nodes]

    async def get_children(self, topic_id: int) -> List[TreeNode]:
        """
        Direct children of topic_id as lazy TreeNodes (children=None).
        Served from cache without I/O when known; otherwise fetched, merged and returned.
        Concurrent calls for the same id share one fetch.
        """
        if self.cache.has_complete_children(topic_id):
            return self._nodes_for(self.cache.children_of[topic_id])
        if self.cache.child_count_of.get(topic_id) == 0:
            return []

        task = self._inflight.get(topic_id)
        if task is None:
            task = self._spawn(self._load_children(topic_id))
            self._inflight[topic_id] = task
            task.add_done_callback(lambda _t: self._inflight.pop(topic_id, None))
        ids = await asyncio.shield(task)
        return self._nodes_for(ids)

    async def _load_children(self, topic_id: int) -> List[int]:
        self.loading_ids.add(topic_id)
        try:
            try:
                children = await self.provider.fetch_children(topic_id)
            except TransientFetchError as e:
                log.warning("Loading children of topic %d failed: %s", topic_id, e)
                return []

            counts = await self._fetch_missing_counts(children)
            ids = self.cache.merge_children(topic_id, children, complete=True)
            self._merge_counts(counts)
        finally:
            self.loading_ids.discard(topic_id)

        if self.prefetch:
            self.prefetch_neighbors(ids)
        return ids

    async def _fetch_missing_counts(self, children: List[TopicRecord]) -> Dict[int, int]:
        """Child counts for records whose count is not cached. Failed counts are left out."""
        unknown = [c.id for c in children if c.id not in self.cache.child_count_of]
        results = await asyncio.gather(
            *(self.provider.fetch_child_count(i) for i in unknown),
            return_exceptions=True,
        )
        counts = {}
        for child_id, result in zip(unknown, results):
            if isinstance(result, TransientFetchError):
                log.warning("Counting children of topic %d failed: %s", child_id, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                counts[child_id] = result
        return counts

    def _merge_counts(self, counts: Dict[int, int]) -> None:
        for child_id, count in counts.items():
            self.cache.child_count_of.setdefault(child_id, count)

    def prefetch_neighbors(self, child_ids: Iterable[int]) -> List[asyncio.Task]:
        """
        Warm the cache with the children of child_ids in the background, staggered by
        prefetch_delay. Ids already prefetched or already loaded are skipped. Returns
        the scheduled tasks; callers may ignore them. Needs a running event loop.
        """
        tasks = []
        for child_id in child_ids:
            if child_id in self._prefetched or self.cache.has_complete_children(child_id):
                continue
            delay = self.prefetch_delay * (len(tasks) + 1)
            tasks.append(self._spawn(self._prefetch_one(child_id, delay)))
            self._prefetched.add(child_id)
        return tasks

    async def _prefetch_one(self, topic_id: int, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.cache.has_complete_children(topic_id):
            return
        try:
            children = await self.provider.fetch_children(topic_id)
        except TransientFetchError as e:
            log.debug("Prefetch of topic %d skipped: %s", topic_id, e)
            return
        counts = await self._fetch_missing_counts(children)
        self.cache.merge_children(topic_id, children, complete=True)
        self._merge_counts(counts)

    # ------------------------------------------------------------------
    # Views and lookups
    # ------------------------------------------------------------------

    def build_tree_view(self, parent_id: Optional[int] = None) -> List[TreeNode]:
        """
        Nested TreeNodes for the current cache state under parent_id (None = roots). No I/O.
        Built children-first with an explicit stack, so any depth works.
        """
        top = self.cache.root_ids if parent_id is None else self.cache.children_of.get(parent_id, [])
        built: Dict[int, TreeNode] = {}
        visited: Set[int] = set()
        stack = [(i, False) for i in reversed(top)]
        while stack:
            topic_id, children_done = stack.pop()
            topic = self.cache.nodes.get(topic_id)
            if topic is None:
                continue
            child_ids = self.cache.children_of.get(topic_id)
            if not children_done:
                # A topic reachable twice (bad parent data) is expanded once.
                if topic_id in visited:
                    continue
                visited.add(topic_id)
                stack.append((topic_id, True))
                if child_ids:
                    stack.extend((c, False) for c in reversed(child_ids))
                continue
            children = [built[c] for c in child_ids if c in built] if child_ids else None
            built[topic_id] = self._node(topic, children)
        return [built[i] for i in top if i in built]

    def get_record(self, topic_id: int) -> Optional[TopicRecord]:
        return self.cache.nodes.get(topic_id)

    async def search(self, query: str, limit: Optional[int] = None) -> List[TopicRecord]:
        """
        Case-insensitive title search. Cache matches are returned when there are at
        least search_threshold of them; otherwise the provider's results are.
        Results never touch the adjacency maps.
        """
        query = query.strip()
        if not query:
            return []
        limit = limit or self.search_limit
        needle = query.casefold()
        hits = [t for t in self.cache.nodes.values() if needle in t.title.casefold()][:limit]
        if len(hits) >= self.search_threshold:
            return hits
        try:
            return await self.provider.search_topics(query, limit)
        except TransientFetchError as e:
            log.warning("Remote topic search for %r failed: %s", query, e)
            return []

    async def wait_idle(self) -> None:
        """Wait for background hydration and outstanding prefetches (used by CLI and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
