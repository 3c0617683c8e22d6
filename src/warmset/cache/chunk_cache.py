"""Byte-budgeted chunk cache with least-recently-used eviction."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CacheEntry(BaseModel):
    """A resident chunk. Keyed by chunk id, not model id."""

    key: str
    data: bytes
    last_accessed: datetime
    access_count: int = 1
    size_bytes: int


class ChunkCache:
    """In-process IChunkCache bounded by a byte budget.

    Entries are kept in access order, oldest first, so eviction walks them in
    ascending ``last_accessed`` order without sorting. A single entry larger
    than the whole budget drains the cache and is still inserted.
    """

    def __init__(self, budget_bytes: int = 100 * 1024 * 1024,
                 clock: Callable[[], datetime] = _utcnow) -> None:
        if budget_bytes <= 0:
            raise ValueError(f"budget_bytes must be positive, got {budget_bytes}")
        self._budget = budget_bytes
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._total_bytes = 0
        self._hits = 0
        self._misses = 0

    @property
    def budget_bytes(self) -> int:
        return self._budget

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> bytes | None:
        """Return the bytes for ``key`` and mark it most recently used."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        entry.last_accessed = self._clock()
        entry.access_count += 1
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.data

    def peek(self, key: str) -> bytes | None:
        """Return the bytes for ``key`` without touching LRU state or counters."""
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        return entry.model_copy() if entry is not None else None

    def put(self, key: str, data: bytes) -> None:
        """Insert or replace ``key``, evicting least-recently-used entries to fit."""
        data = bytes(data)
        size = len(data)
        self._discard(key)
        if self._total_bytes + size > self._budget:
            self._evict_for(size)
        self._entries[key] = CacheEntry(
            key=key,
            data=data,
            last_accessed=self._clock(),
            access_count=1,
            size_bytes=size,
        )
        self._total_bytes += size

    def evict(self, key: str) -> bool:
        """Explicitly drop ``key``. Returns whether it was resident."""
        removed = self._discard(key)
        if removed:
            logger.debug("cache_evicted", key=key, reason="explicit")
        return removed

    def keys(self) -> list[str]:
        return list(self._entries)

    def utilization(self) -> float:
        return self._total_bytes / self._budget

    def hit_rate(self) -> float:
        total = self._hits + self._misses
        return self._hits / total if total else 0.0

    def stats(self) -> dict[str, Any]:
        return {
            "entries": len(self._entries),
            "total_bytes": self._total_bytes,
            "budget_bytes": self._budget,
            "utilization": self.utilization(),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self.hit_rate(),
        }

    def _discard(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_bytes -= entry.size_bytes
        return True

    def _evict_for(self, size: int) -> None:
        while self._entries and self._total_bytes + size > self._budget:
            key, entry = self._entries.popitem(last=False)
            self._total_bytes -= entry.size_bytes
            logger.debug("cache_evicted", key=key, size_bytes=entry.size_bytes, reason="budget")
