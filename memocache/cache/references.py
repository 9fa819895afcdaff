"""Caches whose values may be reclaimed by the garbage collector.

Each value is held through a ``weakref.ref`` whose callback pushes the dead
handle onto a pending queue. A reverse index (handle -> key) lets a
reconciliation pass drop the dangling keys; the pass runs under the cache
lock before every read, size, iteration, removal and clear, so a reclaimed
entry is indistinguishable from one that was never inserted.

CPython has no soft references, so the two reclaimable strengths differ in
how long values are kept reachable:

- WEAK: the cache holds only the weak handle; a value disappears as soon as
  nothing else references it.
- SOFT: the cache additionally retains a strong reference to every value and
  releases all of them when the memory probe reports pressure (or when
  ``release_soft_references()`` is called). After a release the values
  behave like weak ones until they are stored again.

WEAK caches reject values that do not support weak references (``int``,
``str``, ``bytes``, ``tuple``, ``list``, ``dict``). SOFT caches store such
values inside a weak-referenceable box that only the retention holds, so
they live exactly until the next release.
"""

from __future__ import annotations

import logging
import threading
import time
import weakref
from collections import deque
from collections.abc import Callable, Hashable, Iterator, MutableMapping
from enum import Enum
from typing import Any, Generic, TypeVar

from memocache import metrics
from memocache.cache.lru import EvictionCallback, LRUCache
from memocache.config import get_settings
from memocache.errors import ConfigurationError, UnreferenceableValueError
from memocache.utils.memory_config import MemoryConfig

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class _SoftBox:
    """Weak-referenceable holder for a soft value that is not."""

    __slots__ = ("value", "__weakref__")

    def __init__(self, value: Any) -> None:
        self.value = value


class ReferenceStrength(Enum):
    """How strongly a cache holds its values.

    Retention priority under equal memory pressure: STRONG > SOFT > WEAK.
    """

    STRONG = "strong"
    SOFT = "soft"
    WEAK = "weak"

    @classmethod
    def parse(cls, value: ReferenceStrength | str | None) -> ReferenceStrength:
        if value is None:
            return cls.STRONG
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise ConfigurationError(
                f"unknown reference strength: {value!r}",
                parameter="strength",
                value=value,
            ) from e


class ReferencedCache(MutableMapping, Generic[K, V]):
    """Map from strong keys to soft or weak values, optionally LRU-bounded.

    With ``max_entries`` set, entries can leave the map three ways: capacity
    eviction (least recently used first), reclamation of the value by the
    garbage collector, or explicit removal. Capacity eviction reports the
    unwrapped value to ``on_evict``; an entry whose value was already
    reclaimed is dropped without a callback.
    """

    def __init__(
        self,
        strength: ReferenceStrength | str,
        max_entries: int | None = None,
        on_evict: EvictionCallback | None = None,
        load_factor: float = 0.75,
        memory_config: MemoryConfig | None = None,
        pressure_probe: Callable[[], bool] | None = None,
        pressure_check_interval: float | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            strength: SOFT or WEAK
            max_entries: Capacity for LRU eviction; None means unbounded
            on_evict: Callback for capacity-evicted (key, value) pairs
            load_factor: Validated sizing hint
            memory_config: Budget used by the default pressure probe
            pressure_probe: Returns True under memory pressure (SOFT only);
                defaults to ``memory_config.is_under_pressure``
            pressure_check_interval: Minimum seconds between probe calls;
                defaults to the process settings
        """
        self.strength = ReferenceStrength.parse(strength)
        if self.strength is ReferenceStrength.STRONG:
            raise ConfigurationError(
                "strong values do not need a referenced cache",
                parameter="strength",
                value=self.strength.value,
            )
        if load_factor <= 0:
            raise ConfigurationError(
                "load_factor must be > 0", parameter="load_factor", value=load_factor
            )
        self.max_entries = max_entries
        self.load_factor = load_factor
        self._on_evict = on_evict
        self._refs: MutableMapping[K, weakref.ref]
        if max_entries is not None:
            self._refs = LRUCache(
                max_entries,
                on_evict=self._on_capacity_evict,
                load_factor=load_factor,
                cache_type=f"{self.strength.value}_lru",
            )
        else:
            self._refs = {}
        # id(handle) -> (handle, key); the stored handle keeps the id unique
        self._ref_keys: dict[int, tuple[weakref.ref, K]] = {}
        # Dead handles pushed by weakref callbacks, drained by _reconcile()
        self._pending: deque[weakref.ref] = deque()
        # Strong references for SOFT values (the value itself or its _SoftBox)
        self._retained: dict[K, Any] = {}
        self._evicted: list[tuple[K, V]] = []
        self._lock = threading.RLock()

        if self.strength is ReferenceStrength.SOFT:
            if pressure_probe is None:
                pressure_probe = (memory_config or MemoryConfig.from_env()).is_under_pressure
            if pressure_check_interval is None:
                pressure_check_interval = get_settings().pressure_check_interval_seconds
        self._pressure_probe = pressure_probe
        self._pressure_interval = pressure_check_interval or 0.0
        self._next_pressure_check = 0.0

    @property
    def is_lru(self) -> bool:
        return self.max_entries is not None

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def _make_ref(self, value: V) -> tuple[weakref.ref, Any]:
        """Return the handle for ``value`` and the object it refers to."""
        try:
            return weakref.ref(value, self._pending.append), value
        except TypeError as e:
            if self.strength is not ReferenceStrength.SOFT:
                raise UnreferenceableValueError(value, self.strength.value) from e
        box = _SoftBox(value)
        return weakref.ref(box, self._pending.append), box

    @staticmethod
    def _live(ref: weakref.ref | None) -> Any:
        """Unwrapped value behind ``ref``, or _MISSING once reclaimed."""
        if ref is None:
            return _MISSING
        target = ref()
        if target is None:
            return _MISSING
        if type(target) is _SoftBox:
            return target.value
        return target

    def _peek_ref(self, key: K) -> weakref.ref | None:
        if isinstance(self._refs, LRUCache):
            return self._refs.peek(key)
        return self._refs.get(key)

    def _forget(self, key: K, ref: weakref.ref | None) -> None:
        if ref is not None:
            self._ref_keys.pop(id(ref), None)
        self._retained.pop(key, None)

    def _reconcile(self) -> None:
        """Drop entries whose values have been reclaimed."""
        if self._pressure_probe is not None:
            self._maybe_release_soft()
        removed = 0
        while self._pending:
            ref = self._pending.popleft()
            entry = self._ref_keys.get(id(ref))
            if entry is None or entry[0] is not ref:
                # Replaced or removed before its value died
                continue
            del self._ref_keys[id(ref)]
            key = entry[1]
            if self._peek_ref(key) is ref:
                self._refs.pop(key, None)
                self._retained.pop(key, None)
                removed += 1
        if removed:
            metrics.record_reclaimed(self.strength.value, removed)
            logger.debug(
                f"[ReferencedCache] {self.strength.value} cache reconciled "
                f"{removed} reclaimed entries"
            )

    def _maybe_release_soft(self) -> None:
        if not self._retained:
            return
        now = time.monotonic()
        if now < self._next_pressure_check:
            return
        self._next_pressure_check = now + self._pressure_interval
        if self._pressure_probe():
            self._release_retained("memory pressure")

    def _release_retained(self, reason: str) -> int:
        count = len(self._retained)
        # Clearing may free values and run weakref callbacks right here
        self._retained.clear()
        if count:
            metrics.record_soft_release(count)
            logger.info(f"[ReferencedCache] Released {count} soft values ({reason})")
        return count

    def release_soft_references(self) -> int:
        """Drop all soft retention now, as if under memory pressure.

        Returns:
            Number of values whose strong retention was released
        """
        with self._lock:
            count = self._release_retained("explicit release")
            self._reconcile()
        return count

    def _on_capacity_evict(self, key: K, ref: weakref.ref) -> None:
        # Runs inside put(), under self._lock; unwrap before a box loses retention
        value = self._live(ref)
        self._forget(key, ref)
        if value is not _MISSING and self._on_evict is not None:
            self._evicted.append((key, value))

    # =========================================================================
    # Mapping protocol
    # =========================================================================

    def __getitem__(self, key: K) -> V:
        with self._lock:
            self._reconcile()
            ref = self._refs[key]
            value = self._live(ref)
            if value is _MISSING:
                self._refs.pop(key, None)
                self._forget(key, ref)
                raise KeyError(key)
            return value

    def put(self, key: K, value: V) -> V | None:
        """Store ``value`` under ``key``; return the previous live value or None."""
        with self._lock:
            self._reconcile()
            new_ref, target = self._make_ref(value)
            old_ref = self._peek_ref(key)
            previous = self._live(old_ref)
            if old_ref is not None:
                self._forget(key, old_ref)
            if isinstance(self._refs, LRUCache):
                self._refs.put(key, new_ref)
            else:
                self._refs[key] = new_ref
            self._ref_keys[id(new_ref)] = (new_ref, key)
            if self.strength is ReferenceStrength.SOFT:
                self._retained[key] = target
            evicted, self._evicted = self._evicted, []
        for evicted_key, evicted_value in evicted:
            self._on_evict(evicted_key, evicted_value)
        return None if previous is _MISSING else previous

    def __setitem__(self, key: K, value: V) -> None:
        self.put(key, value)

    def __delitem__(self, key: K) -> None:
        with self._lock:
            self._reconcile()
            ref = self._refs.pop(key)
            self._forget(key, ref)

    def pop(self, key: K, default: Any = _MISSING) -> V | Any:
        with self._lock:
            self._reconcile()
            ref = self._refs.pop(key, None)
            value = self._live(ref)
            if ref is not None:
                self._forget(key, ref)
            if value is not _MISSING:
                return value
        if default is _MISSING:
            raise KeyError(key)
        return default

    def __contains__(self, key: object) -> bool:
        with self._lock:
            self._reconcile()
            return self._live(self._peek_ref(key)) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            self._reconcile()
            return len(self._refs)

    def __iter__(self) -> Iterator[K]:
        return iter([key for key, _ in self.items()])

    def items(self) -> list[tuple[K, V]]:
        """Snapshot of live entries; entries reclaimed mid-snapshot are skipped."""
        with self._lock:
            self._reconcile()
            pairs = []
            for key in list(self._refs):
                value = self._live(self._peek_ref(key))
                if value is not _MISSING:
                    pairs.append((key, value))
            return pairs

    def values(self) -> list[V]:
        return [value for _, value in self.items()]

    def clear(self) -> None:
        with self._lock:
            self._reconcile()
            self._refs.clear()
            self._ref_keys.clear()
            self._retained.clear()

    reset = clear

    def __repr__(self) -> str:
        bound = f", max_entries={self.max_entries}" if self.is_lru else ""
        return f"ReferencedCache(strength={self.strength.value}{bound})"
