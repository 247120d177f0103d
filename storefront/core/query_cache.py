"""
Keyed query cache with invalidate-then-refetch semantics.

Features:
- One cached snapshot per query key, retained across failed refetches
- In-flight de-duplication: concurrent reads share a single fetch task
- Generation counter so a fetch started before an invalidation never
  marks the entry fresh
- Statistics for diagnostics
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from storefront.core.exceptions import FetchFailed, RemoteStoreError
from storefront.core.sentry_integration import capture_exception

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


class QueryStatus(str, Enum):
    """Lifecycle of a cached query."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class QueryEntry:
    """Single cached query with metadata."""

    key: str
    data: Any = None
    status: QueryStatus = QueryStatus.IDLE
    stale: bool = True
    generation: int = 0
    error: FetchFailed | None = None
    updated_at: float | None = None
    task: asyncio.Task | None = None
    task_generation: int = -1

    @property
    def has_data(self) -> bool:
        return self.updated_at is not None

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()


@dataclass
class QueryStats:
    """Query cache statistics."""

    fetches: int = 0
    failures: int = 0
    invalidations: int = 0
    deduplicated: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "fetches": self.fetches,
            "failures": self.failures,
            "invalidations": self.invalidations,
            "deduplicated": self.deduplicated,
        }


@dataclass
class QueryCache:
    """Snapshots for the engine's collections, owned by one engine instance."""

    _entries: dict[str, QueryEntry] = field(default_factory=dict)
    _background: set[asyncio.Task] = field(default_factory=set)
    stats: QueryStats = field(default_factory=QueryStats)

    def entry(self, key: str) -> QueryEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = QueryEntry(key=key)
            self._entries[key] = entry
        return entry

    def snapshot(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None or not entry.has_data:
            return default
        return entry.data

    def is_stale(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def invalidate(self, key: str) -> None:
        """Mark a query stale so the next read refetches it."""
        entry = self.entry(key)
        entry.stale = True
        entry.generation += 1
        self.stats.invalidations += 1
        logger.debug("Query %s invalidated (generation %s)", key, entry.generation)

    async def fetch(self, key: str, fetcher: Fetcher) -> Any:
        """Return fresh data for ``key``, joining an in-flight fetch when it is current.

        Raises:
            FetchFailed: the fetch failed or was dropped by ``clear()``; the
                previous snapshot stays cached
        """
        entry = self.entry(key)
        while True:
            if self._entries.get(key) is not entry:
                raise FetchFailed(f"Query {key} was cleared")
            if entry.is_fetching:
                task = entry.task
                if entry.task_generation == entry.generation:
                    self.stats.deduplicated += 1
                    return await self._join(entry, task)
                # started before the latest invalidation; let it land, then refetch
                try:
                    await self._join(entry, task)
                except FetchFailed:
                    pass
                continue
            if not entry.stale and entry.has_data:
                return entry.data
            entry.task_generation = entry.generation
            entry.task = asyncio.get_running_loop().create_task(
                self._run(entry, fetcher, entry.task_generation)
            )
            return await self._join(entry, entry.task)

    async def _join(self, entry: QueryEntry, task: asyncio.Task) -> Any:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and not (current and current.cancelling()):
                # the fetch was dropped, not the caller
                raise FetchFailed(f"Fetch for {entry.key} was cancelled") from None
            raise

    def schedule_fetch(self, key: str, fetcher: Fetcher) -> asyncio.Task | None:
        """Start a background refetch if an event loop is running and none is in flight."""
        entry = self.entry(key)
        if entry.is_fetching:
            return entry.task
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        task = loop.create_task(self._swallow(self.fetch(key, fetcher)))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _swallow(self, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except FetchFailed:
            # absorbed into entry.error
            pass

    async def _run(self, entry: QueryEntry, fetcher: Fetcher, started_generation: int) -> Any:
        entry.status = QueryStatus.LOADING
        self.stats.fetches += 1
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            entry.status = QueryStatus.READY if entry.has_data else QueryStatus.IDLE
            raise
        except RemoteStoreError as e:
            self._record_failure(entry, FetchFailed(e.message))
            raise entry.error from e
        except Exception as e:
            logger.exception("Unexpected error fetching %s", entry.key)
            capture_exception(e, query={"key": entry.key})
            self._record_failure(entry, FetchFailed(str(e) or type(e).__name__))
            raise entry.error from e

        if self._entries.get(entry.key) is not entry:
            # dropped by clear() while fetching
            return data

        entry.data = data
        entry.updated_at = time.time()
        entry.error = None
        entry.status = QueryStatus.READY
        entry.stale = entry.generation != started_generation
        return data

    def _record_failure(self, entry: QueryEntry, error: FetchFailed) -> None:
        self.stats.failures += 1
        entry.error = error
        # a failed refetch falls back to the last ready snapshot, never to empty
        entry.status = QueryStatus.READY if entry.has_data else QueryStatus.ERROR
        logger.warning("Fetch failed for %s: %s", entry.key, error.reason)

    def remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry and entry.is_fetching:
            entry.task.cancel()

    def clear(self) -> int:
        """Drop every entry and cancel in-flight fetches. Returns the number removed."""
        count = len(self._entries)
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        for key in list(self._entries):
            self.remove(key)
        return count
