"""Lazy values, invalidation groups, bounded caches and lazy collections.

    from memocache.cache import MemoizedValue, InvalidationGroup, create_lru_cache

Architecture:
- generation.py: GenerationClock for sweep-free invalidate-all
- memoized.py: MemoizedValue single-slot memoizer and its pinned/error-caching variants
- group.py: InvalidationGroup bulk reset of Resettable members
- lru.py / references.py: strong LRU and soft/weak value caches
- factory.py: CacheBuilder and create_* helpers over the cache shapes
- lazy_collections.py: LazyList / LazyMap and their LRU working-set variants
- iterables.py, memoizer.py, invalidation.py: conveniences built on the above
"""

from memocache.cache.factory import (
    CacheBuilder,
    StrongMap,
    compute_min_table_size,
    create_lru_cache,
    create_map,
    create_soft_value_cache,
    create_soft_value_lru_cache,
    create_weak_value_cache,
    create_weak_value_lru_cache,
)
from memocache.cache.generation import GenerationClock, get_default_clock, invalidate_all
from memocache.cache.group import InvalidationGroup
from memocache.cache.invalidation import (
    CacheInvalidationResult,
    CacheInvalidator,
    FullInvalidationResult,
    get_cache_invalidator,
    invalidate_all_caches,
)
from memocache.cache.iterables import GeneratedIterableBuilder, builder_using_generator
from memocache.cache.lazy_collections import LazyList, LazyMap, LRULazyList, LRULazyMap
from memocache.cache.lru import LRUCache
from memocache.cache.memoized import ErrorCachingValue, MemoizedValue, PinnedValue, memoize
from memocache.cache.memoizer import Memoizer
from memocache.cache.references import ReferencedCache, ReferenceStrength
from memocache.cache.resettable import Resettable

__all__ = [
    "CacheBuilder",
    "CacheInvalidationResult",
    "CacheInvalidator",
    "ErrorCachingValue",
    "FullInvalidationResult",
    "GeneratedIterableBuilder",
    "GenerationClock",
    "InvalidationGroup",
    "LRUCache",
    "LRULazyList",
    "LRULazyMap",
    "LazyList",
    "LazyMap",
    "MemoizedValue",
    "Memoizer",
    "PinnedValue",
    "ReferenceStrength",
    "ReferencedCache",
    "Resettable",
    "StrongMap",
    "builder_using_generator",
    "compute_min_table_size",
    "create_lru_cache",
    "create_map",
    "create_soft_value_cache",
    "create_soft_value_lru_cache",
    "create_weak_value_cache",
    "create_weak_value_lru_cache",
    "get_cache_invalidator",
    "get_default_clock",
    "invalidate_all",
    "invalidate_all_caches",
    "memoize",
]
