"""Bounded, time-expiring result cache.

One process-wide instance is shared by every transport. Mutations never
await, so the single-threaded event loop serializes them without a lock.

Identical requests that arrive while the first is still running are not
coalesced: both run the pipeline and the later write wins.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from ..config import clamp_ttl_ms

if TYPE_CHECKING:
    from ..models import ResearchResult

DEFAULT_TTL: float = 600.0
DEFAULT_MAX_ENTRIES = 50


@dataclass(slots=True, frozen=True)
class CacheEntry:
    """A cached result with its expiry deadline."""
    value: ResearchResult
    expires_at: float


class ResultCache:
    """LRU cache with lazy TTL expiry.

    Args:
        ttl: Entry lifetime in seconds, clamped into [1s, 24h]
        max_entries: Capacity; inserting past it drops the least recently used entry
        clock: Monotonic time source (injectable for tests)

    Example:
        >>> cache = ResultCache(ttl=60, max_entries=2)
        >>> cache.put("k", result)
        >>> cache.get("k") is result
        True
    """

    __slots__ = ("_entries", "_ttl", "_max_entries", "_clock", "_hits", "_misses")

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl = clamp_ttl_ms(int(ttl * 1000)) / 1000
        self._max_entries = max_entries
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: str) -> ResearchResult | None:
        """Return a fresh entry and mark it most recently used; stale entries are dropped."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def put(self, key: str, value: ResearchResult) -> None:
        """Insert or replace (last write wins), evicting LRU entries past capacity."""
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self._ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and self._clock() < entry.expires_at

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def stats(self) -> dict[str, object]:
        """Cache statistics for diagnostics."""
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if now >= e.expires_at)
        return {
            "total_entries": len(self._entries),
            "expired_entries": expired,
            "active_entries": len(self._entries) - expired,
            "ttl_seconds": self._ttl,
            "max_entries": self._max_entries,
            "hits": self._hits,
            "misses": self._misses,
        }
