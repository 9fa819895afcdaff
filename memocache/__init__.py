"""memocache: lazy-value caching and eviction.

    from memocache import MemoizedValue, InvalidationGroup, LRULazyList

    schema = MemoizedValue.of(load_schema)
    frames = LRULazyList(working_set_size=8)

See ``memocache.cache`` for the full set of cache types.
"""

from memocache.cache import (
    CacheBuilder,
    ErrorCachingValue,
    GenerationClock,
    InvalidationGroup,
    LazyList,
    LazyMap,
    LRUCache,
    LRULazyList,
    LRULazyMap,
    MemoizedValue,
    Memoizer,
    ReferencedCache,
    ReferenceStrength,
    Resettable,
    builder_using_generator,
    create_lru_cache,
    create_map,
    create_soft_value_cache,
    create_soft_value_lru_cache,
    create_weak_value_cache,
    create_weak_value_lru_cache,
    invalidate_all,
    memoize,
)
from memocache.config import CacheSettings, get_settings
from memocache.errors import (
    ComputationError,
    ConfigurationError,
    MemocacheError,
    SlotIndexError,
    SlotKeyError,
    UnreferenceableValueError,
)

__version__ = "0.1.0"

__all__ = [
    "CacheBuilder",
    "CacheSettings",
    "ComputationError",
    "ConfigurationError",
    "ErrorCachingValue",
    "GenerationClock",
    "InvalidationGroup",
    "LRUCache",
    "LRULazyList",
    "LRULazyMap",
    "LazyList",
    "LazyMap",
    "MemocacheError",
    "MemoizedValue",
    "Memoizer",
    "ReferenceStrength",
    "ReferencedCache",
    "Resettable",
    "SlotIndexError",
    "SlotKeyError",
    "UnreferenceableValueError",
    "builder_using_generator",
    "create_lru_cache",
    "create_map",
    "create_soft_value_cache",
    "create_soft_value_lru_cache",
    "create_weak_value_cache",
    "create_weak_value_lru_cache",
    "get_settings",
    "invalidate_all",
    "memoize",
]
