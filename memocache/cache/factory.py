"""Factory for bounded and reclaimable caches.

Four map shapes, selected by capacity policy and value strength:

    policy \\ strength   strong          soft / weak
    unbounded           StrongMap       ReferencedCache
    fixed (LRU)         LRUCache        ReferencedCache(max_entries=...)

Usage:
    from memocache.cache.factory import CacheBuilder, create_lru_cache

    recent = create_lru_cache(256)

    thumbnails = (
        CacheBuilder()
        .strength("soft")
        .capacity(512)
        .lru(lambda key, image: image.close())
        .build()
    )

Defaults for capacity and load factor come from
:func:`memocache.config.get_settings`.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from memocache.cache.lru import EvictionCallback, LRUCache
from memocache.cache.references import ReferencedCache, ReferenceStrength
from memocache.config import get_settings
from memocache.errors import ConfigurationError

__all__ = [
    "CacheBuilder",
    "StrongMap",
    "compute_min_table_size",
    "create_lru_cache",
    "create_map",
    "create_soft_value_cache",
    "create_soft_value_lru_cache",
    "create_weak_value_cache",
    "create_weak_value_lru_cache",
]


def compute_min_table_size(expected_entries: int, load_factor: float | None = None) -> int:
    """Smallest hash table size that holds ``expected_entries`` without a rehash.

    Args:
        expected_entries: Number of entries expected (>= 0)
        load_factor: Fill ratio in (0, 1]; defaults to the process setting

    Returns:
        ``int(expected_entries / load_factor + 1)``
    """
    if load_factor is None:
        load_factor = get_settings().default_load_factor
    if expected_entries < 0:
        raise ConfigurationError(
            "number of entries must be >= 0",
            parameter="expected_entries",
            value=expected_entries,
        )
    if load_factor <= 0 or load_factor > 1:
        raise ConfigurationError(
            f"invalid load factor, must be in (0, 1]: {load_factor}",
            parameter="load_factor",
            value=load_factor,
        )
    return int(expected_entries / load_factor + 1)


class StrongMap(dict):
    """Growable strong map that can join an InvalidationGroup."""

    def reset(self) -> None:
        self.clear()


class CacheBuilder:
    """Fluent builder for every cache shape the factory supports."""

    def __init__(self) -> None:
        settings = get_settings()
        self._strength = ReferenceStrength.STRONG
        self._lru = False
        self._capacity = settings.default_capacity
        self._load_factor = settings.default_load_factor
        self._on_evict: EvictionCallback | None = None
        self._reference_options: dict[str, Any] = {}

    def strength(self, strength: ReferenceStrength | str | None) -> CacheBuilder:
        """Set value strength; None means STRONG."""
        self._strength = ReferenceStrength.parse(strength)
        return self

    def capacity(self, capacity: int) -> CacheBuilder:
        """Set the LRU bound (or the initial size hint for growable maps)."""
        if capacity < 1:
            raise ConfigurationError(
                "capacity can not be < 1", parameter="capacity", value=capacity
            )
        self._capacity = capacity
        return self

    def load_factor(self, load_factor: float) -> CacheBuilder:
        if load_factor <= 0:
            raise ConfigurationError(
                "load_factor must be > 0", parameter="load_factor", value=load_factor
            )
        self._load_factor = load_factor
        return self

    def lru(self, flag_or_callback: bool | EvictionCallback = True) -> CacheBuilder:
        """Enable LRU eviction.

        Pass a callable to enable LRU and register it as the eviction
        callback; pass False to build an unbounded map.
        """
        if callable(flag_or_callback):
            self._lru = True
            self._on_evict = flag_or_callback
        else:
            self._lru = bool(flag_or_callback)
        return self

    def reference_options(self, **options: Any) -> CacheBuilder:
        """Extra keyword arguments for ReferencedCache (pressure probe etc.)."""
        self._reference_options.update(options)
        return self

    def build(self) -> MutableMapping:
        if self._strength is ReferenceStrength.STRONG:
            if self._lru:
                return LRUCache(
                    self._capacity,
                    on_evict=self._on_evict,
                    load_factor=self._load_factor,
                )
            # Insertion-ordered and growable; capacity is only a hint here
            return StrongMap()
        return ReferencedCache(
            self._strength,
            max_entries=self._capacity if self._lru else None,
            on_evict=self._on_evict if self._lru else None,
            load_factor=self._load_factor,
            **self._reference_options,
        )


def create_map(initial_size: int | None = None) -> StrongMap:
    """Plain growable map; ``initial_size`` is validated but only a hint."""
    builder = CacheBuilder()
    if initial_size is not None:
        builder.capacity(initial_size)
    return builder.build()


def create_lru_cache(
    max_entries: int | None = None,
    on_evict: EvictionCallback | None = None,
) -> LRUCache:
    """Strong LRU cache of ``max_entries`` (default from settings)."""
    builder = CacheBuilder()
    if max_entries is not None:
        builder.capacity(max_entries)
    return builder.lru(on_evict or True).build()


def create_soft_value_cache(**options: Any) -> ReferencedCache:
    """Growable map whose values are released under memory pressure."""
    return CacheBuilder().strength(ReferenceStrength.SOFT).reference_options(**options).build()


def create_soft_value_lru_cache(
    max_entries: int | None = None,
    on_evict: EvictionCallback | None = None,
    **options: Any,
) -> ReferencedCache:
    builder = CacheBuilder().strength(ReferenceStrength.SOFT).reference_options(**options)
    if max_entries is not None:
        builder.capacity(max_entries)
    return builder.lru(on_evict or True).build()


def create_weak_value_cache() -> ReferencedCache:
    """Growable map whose entries vanish once their values are unreachable."""
    return CacheBuilder().strength(ReferenceStrength.WEAK).build()


def create_weak_value_lru_cache(
    max_entries: int | None = None,
    on_evict: EvictionCallback | None = None,
) -> ReferencedCache:
    builder = CacheBuilder().strength(ReferenceStrength.WEAK)
    if max_entries is not None:
        builder.capacity(max_entries)
    return builder.lru(on_evict or True).build()
