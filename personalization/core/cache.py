"""
Versioned TTL cache.

In-process LRU cache with per-entry expiry and a global version counter.
``invalidate()`` bumps the version so every entry written before the bump
is treated as a miss without walking the store. Values are stored as
given; callers put immutable values (tuples, frozen dataclasses) in it so
a cached structure is never mutated in place.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_SIZE = 1000


@dataclass
class CacheStats:
    """Counters for cache activity."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


@dataclass(frozen=True)
class _Entry:
    value: Any
    expires_at: float
    version: int


class VersionedTTLCache:
    """
    LRU cache with TTL expiry and version-bump invalidation.

    Example:
        >>> cache = VersionedTTLCache(ttl_seconds=60, max_size=100)
        >>> cache.set(("learner-1", "math"), ("c1", "c2"))
        >>> cache.get(("learner-1", "math"))
        ('c1', 'c2')
        >>> cache.invalidate()
        >>> cache.get(("learner-1", "math")) is None
        True
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] | None = None,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock or time.monotonic
        self._entries: OrderedDict[Hashable, _Entry] = OrderedDict()
        self._version = 0
        self._lock = threading.Lock()
        self.stats = CacheStats()

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value, or ``default`` on a miss or stale entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return default
            if entry.version != self._version or entry.expires_at <= self._clock():
                del self._entries[key]
                self.stats.misses += 1
                return default
            self._entries.move_to_end(key)
            self.stats.hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any, ttl_seconds: float | None = None) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = _Entry(value, self._clock() + ttl, self._version)
            self._entries.move_to_end(key)
            self.stats.sets += 1
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
                self.stats.evictions += 1

    def get_or_set(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        """Return the cached value or compute, store and return it."""
        sentinel = object()
        value = self.get(key, sentinel)
        if value is sentinel:
            value = factory()
            self.set(key, value)
        return value

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                self.stats.deletes += 1
                return True
            return False

    def invalidate(self) -> int:
        """Bump the version; every existing entry becomes stale. Returns the new version."""
        with self._lock:
            self._version += 1
            return self._version

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
