"""Bounded, access-ordered map with least-recently-used eviction."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterator, MutableMapping
from typing import Any, Generic, TypeVar

from memocache import metrics
from memocache.errors import ConfigurationError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

EvictionCallback = Callable[[Any, Any], None]

_MISSING = object()


class LRUCache(MutableMapping, Generic[K, V]):
    """LRU-evicting map holding at most ``max_entries`` strong entries.

    Both reads (``cache[key]``, ``get``) and writes touch recency; membership
    tests, ``peek`` and iteration do not. Iteration runs from least to most
    recently used.

    Inserting a new key into a full cache first evicts the least recently
    used entry, so the size never exceeds ``max_entries``, not even
    transiently. Replacing the value of an existing key never evicts.
    ``on_evict(key, value)`` runs once per evicted entry, after the cache
    lock has been released.
    """

    def __init__(
        self,
        max_entries: int,
        on_evict: EvictionCallback | None = None,
        load_factor: float = 0.75,
        cache_type: str = "lru",
    ) -> None:
        """Initialize the cache.

        Args:
            max_entries: Maximum number of entries before eviction (>= 1)
            on_evict: Optional callback receiving each evicted (key, value)
            load_factor: Hash table sizing hint; validated, kept for stats
            cache_type: Metrics label for lookups and evictions
        """
        if max_entries < 1:
            raise ConfigurationError(
                "capacity can not be < 1", parameter="max_entries", value=max_entries
            )
        if load_factor <= 0:
            raise ConfigurationError(
                "load_factor must be > 0", parameter="load_factor", value=load_factor
            )
        self.max_entries = max_entries
        self.load_factor = load_factor
        self.cache_type = cache_type
        self._on_evict = on_evict
        self._table: OrderedDict[K, V] = OrderedDict()
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __getitem__(self, key: K) -> V:
        with self._lock:
            try:
                value = self._table[key]
            except KeyError:
                self.misses += 1
                metrics.record_cache_lookup(self.cache_type, hit=False)
                raise
            self._table.move_to_end(key)
            self.hits += 1
        metrics.record_cache_lookup(self.cache_type, hit=True)
        return value

    def peek(self, key: K, default: Any = None) -> V | Any:
        """Read without touching recency or stats."""
        with self._lock:
            return self._table.get(key, default)

    def put(self, key: K, value: V) -> V | None:
        """Store ``value``, evicting the eldest entry if a new key overflows.

        Returns:
            The value previously stored under key, or None
        """
        evicted: list[tuple[K, V]] = []
        with self._lock:
            if key in self._table:
                previous = self._table[key]
                self._table[key] = value
                self._table.move_to_end(key)
            else:
                previous = None
                while len(self._table) >= self.max_entries:
                    evicted.append(self._table.popitem(last=False))
                self._table[key] = value
            self.evictions += len(evicted)
        if evicted:
            self._notify_evicted(evicted)
        return previous

    def __setitem__(self, key: K, value: V) -> None:
        self.put(key, value)

    def _notify_evicted(self, evicted: list[tuple[K, V]]) -> None:
        metrics.record_evictions(self.cache_type, len(evicted))
        logger.debug(f"[LRUCache] {self.cache_type} cache evicted {len(evicted)} entries")
        if self._on_evict is None:
            return
        for key, value in evicted:
            self._on_evict(key, value)

    def __delitem__(self, key: K) -> None:
        with self._lock:
            del self._table[key]

    def pop(self, key: K, default: Any = _MISSING) -> V | Any:
        with self._lock:
            if key in self._table:
                return self._table.pop(key)
        if default is _MISSING:
            raise KeyError(key)
        return default

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[K]:
        with self._lock:
            return iter(list(self._table))

    def items(self) -> list[tuple[K, V]]:
        """Snapshot of entries, least recently used first; no recency change."""
        with self._lock:
            return list(self._table.items())

    def values(self) -> list[V]:
        with self._lock:
            return list(self._table.values())

    def clear(self) -> None:
        """Drop all entries (no eviction callbacks) and reset stats."""
        with self._lock:
            self._table.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0

    reset = clear

    def stats(self) -> dict[str, Any]:
        """Return usage statistics.

        Returns:
            Dictionary with entries, max_entries, hits, misses, evictions
            and hit_rate.
        """
        total_lookups = self.hits + self.misses
        hit_rate = self.hits / total_lookups if total_lookups > 0 else 0.0
        return {
            "entries": len(self._table),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": hit_rate,
        }

    def __repr__(self) -> str:
        return f"LRUCache(entries={len(self)}, max_entries={self.max_entries})"
