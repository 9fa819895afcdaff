"""Lists and maps whose elements are computed lazily, one slot per element.

Every element lives in its own MemoizedValue slot. Reading an element
materializes it; ``reset_cache()`` drops every materialized result while
keeping the elements themselves, so the next read recomputes.

The LRU variants add a working set of K slots: whenever a slot materializes
it becomes the most recent member of the working set, and the slot pushed out
of the working set is reset (not removed). Streaming over an LRU collection
therefore keeps at most K results alive regardless of its length.

Usage:
    from memocache.cache.lazy_collections import LRULazyList

    frames = LRULazyList(working_set_size=5)
    for path in paths:
        frames.add(lambda path=path: decode(path))

    for frame in frames:     # at most 5 decoded frames held at once
        process(frame)
"""

from __future__ import annotations

import logging
import operator
import threading
from collections.abc import Callable, Hashable, Iterator, MutableMapping, MutableSequence
from typing import Any, Generic, TypeVar

from memocache import metrics
from memocache.cache.generation import GenerationClock
from memocache.cache.group import InvalidationGroup
from memocache.cache.lru import LRUCache
from memocache.cache.memoized import InvocationListener, MemoizedValue, PinnedValue
from memocache.errors import ConfigurationError, SlotIndexError, SlotKeyError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")

_MISSING = object()


# =============================================================================
# Working set
# =============================================================================


class WorkingSet:
    """Bounded record of the most recently materialized slots.

    Slots are tracked by identity (MemoizedValue does not define equality),
    so two slots holding equal results are still tracked separately.
    """

    def __init__(self, size: int, label: str) -> None:
        if size < 1:
            raise ConfigurationError(
                "working set size can not be < 1", parameter="working_set_size", value=size
            )
        self.size = size
        self.label = label
        self._tracker: LRUCache[MemoizedValue, bool] = LRUCache(
            size, on_evict=self._on_evict, cache_type="working_set"
        )
        self._listeners: dict[MemoizedValue, InvocationListener] = {}

    def attach(self, slot: MemoizedValue) -> None:
        # Pinned slots ignore reset() and never count against the set
        if isinstance(slot, PinnedValue):
            return

        def listener() -> None:
            self._tracker.put(slot, True)

        slot.add_listener(listener)
        self._listeners[slot] = listener

    def detach(self, slot: MemoizedValue) -> None:
        self._tracker.pop(slot, None)
        listener = self._listeners.pop(slot, None)
        if listener is not None:
            slot.remove_listener(listener)

    def _on_evict(self, slot: MemoizedValue, _: bool) -> None:
        slot.reset()
        metrics.record_working_set_reset(self.label)
        logger.debug(f"[WorkingSet] ({self.label}) reset slot {slot!r}")

    def slots(self) -> list[MemoizedValue]:
        """Tracked slots, least recently materialized first."""
        return list(self._tracker)

    def __len__(self) -> int:
        return len(self._tracker)


# =============================================================================
# Shared slot bookkeeping
# =============================================================================


class _SlotRegistry:
    """Group membership and add/remove hooks shared by lazy lists and maps."""

    def _init_registry(self, clock: GenerationClock | None) -> None:
        self._clock = clock
        self._group = InvalidationGroup(name=type(self).__name__)
        self._lock = threading.RLock()

    def _new_slot(self, computation: Callable[[], Any]) -> MemoizedValue:
        return MemoizedValue(computation, self._clock)

    def _register(self, slot: MemoizedValue) -> MemoizedValue:
        self._group.add(slot)
        self._added(slot)
        return slot

    def _unregister(self, slot: MemoizedValue) -> MemoizedValue:
        self._group.remove(slot)
        self._removed(slot)
        return slot

    def _added(self, slot: MemoizedValue) -> None:
        pass

    def _removed(self, slot: MemoizedValue) -> None:
        pass

    @property
    def group(self) -> InvalidationGroup:
        return self._group

    def reset_cache(self) -> None:
        """Unmaterialize every slot without removing any element."""
        self._group.reset_all()

    reset = reset_cache


class _WorkingSetHooks:
    """Attach/detach slots to ``self._working_set`` as they come and go."""

    _working_set: WorkingSet

    def _added(self, slot: MemoizedValue) -> None:
        self._working_set.attach(slot)

    def _removed(self, slot: MemoizedValue) -> None:
        self._working_set.detach(slot)

    @property
    def working_set_size(self) -> int:
        return self._working_set.size

    def working_set(self) -> list[MemoizedValue]:
        """Slots currently allowed to hold results, least recent first."""
        return self._working_set.slots()


# =============================================================================
# Lists
# =============================================================================


class LazyList(_SlotRegistry, MutableSequence, Generic[T]):
    """A list of lazily computed elements.

    ``add(computation)`` appends a slot; plain values stored through the
    list protocol (``append``, ``insert``, ``lst[i] = v``) become pinned
    constant slots.
    """

    def __init__(self, initial_size: int | None = None, clock: GenerationClock | None = None) -> None:
        if initial_size is not None and initial_size < 0:
            raise ConfigurationError(
                "initial size can not be < 0", parameter="initial_size", value=initial_size
            )
        self._init_registry(clock)
        self._slots: list[MemoizedValue[T]] = []

    def _index(self, index: int, inserting: bool = False) -> int:
        index = operator.index(index)
        size = len(self._slots)
        resolved = index + size if index < 0 else index
        upper = size if inserting else size - 1
        if resolved < 0 or resolved > upper:
            raise SlotIndexError(index, size)
        return resolved

    # -------------------------------------------------------------------------
    # Slot API
    # -------------------------------------------------------------------------

    def add(self, computation: Callable[[], T]) -> MemoizedValue[T]:
        """Append an unmaterialized slot for ``computation`` and return it."""
        slot = self._new_slot(computation)
        with self._lock:
            self._slots.append(slot)
            self._register(slot)
        return slot

    def add_at(self, index: int, computation: Callable[[], T]) -> MemoizedValue[T]:
        """Insert a slot for ``computation`` at ``index``, shifting later ones."""
        slot = self._new_slot(computation)
        with self._lock:
            self._slots.insert(self._index(index, inserting=True), slot)
            self._register(slot)
        return slot

    def get_slot(self, index: int) -> MemoizedValue[T]:
        with self._lock:
            return self._slots[self._index(index)]

    def remove_slot(self, index: int) -> MemoizedValue[T]:
        """Remove and return the slot at ``index`` without materializing it."""
        with self._lock:
            slot = self._slots.pop(self._index(index))
            return self._unregister(slot)

    def _replace_slot(self, index: int, slot: MemoizedValue[T]) -> MemoizedValue[T]:
        with self._lock:
            resolved = self._index(index)
            previous = self._slots[resolved]
            self._slots[resolved] = slot
            self._unregister(previous)
            self._register(slot)
        return previous

    def set(self, index: int, value: T) -> T:
        """Replace the element at ``index`` with ``value``; return the old value.

        The old value is materialized if it had not been computed yet.
        """
        return self._replace_slot(index, MemoizedValue.constant(value)).get()

    def materialized_indices(self) -> list[int]:
        with self._lock:
            slots = list(self._slots)
        return [i for i, slot in enumerate(slots) if slot.has_run()]

    # -------------------------------------------------------------------------
    # MutableSequence protocol
    # -------------------------------------------------------------------------

    def __getitem__(self, index: int | slice) -> T | list[T]:
        if isinstance(index, slice):
            with self._lock:
                slots = self._slots[index]
            return [slot.get() for slot in slots]
        return self.get_slot(index).get()

    def __setitem__(self, index: int, value: T) -> None:
        if isinstance(index, slice):
            raise TypeError("LazyList does not support slice assignment")
        self._replace_slot(index, MemoizedValue.constant(value))

    def __delitem__(self, index: int) -> None:
        if isinstance(index, slice):
            raise TypeError("LazyList does not support slice deletion")
        self.remove_slot(index)

    def insert(self, index: int, value: T) -> None:
        slot = MemoizedValue.constant(value)
        with self._lock:
            self._slots.insert(self._index(index, inserting=True), slot)
            self._register(slot)

    def pop(self, index: int = -1) -> T:
        """Remove the element at ``index`` and return its (materialized) value."""
        return self.remove_slot(index).get()

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[T]:
        for i in range(len(self)):
            yield self[i]

    def reverse(self) -> None:
        with self._lock:
            self._slots.reverse()

    def clear(self) -> None:
        """Remove every element without materializing any of them."""
        with self._lock:
            slots, self._slots = self._slots, []
            for slot in slots:
                self._unregister(slot)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(size={len(self)}, "
            f"materialized={len(self.materialized_indices())})"
        )


class LRULazyList(_WorkingSetHooks, LazyList[T]):
    """LazyList that keeps at most ``working_set_size`` results materialized."""

    def __init__(
        self,
        working_set_size: int,
        initial_size: int | None = None,
        clock: GenerationClock | None = None,
    ) -> None:
        super().__init__(initial_size, clock)
        self._working_set = WorkingSet(working_set_size, label="list")


# =============================================================================
# Maps
# =============================================================================


class LazyMap(_SlotRegistry, MutableMapping, Generic[K, T]):
    """A map whose values are computed lazily on first read.

    ``put(key, computation)`` stores a lazy slot; ``lazy_map[key] = value``
    stores a pinned constant. Membership tests and key iteration never
    materialize; ``values()`` and ``items()`` materialize as they go.
    """

    def __init__(self, clock: GenerationClock | None = None) -> None:
        self._init_registry(clock)
        self._slots: dict[K, MemoizedValue[T]] = {}

    # -------------------------------------------------------------------------
    # Slot API
    # -------------------------------------------------------------------------

    def _store(self, key: K, slot: MemoizedValue[T]) -> MemoizedValue[T] | None:
        with self._lock:
            previous = self._slots.get(key)
            self._slots[key] = slot
            if previous is not None:
                self._unregister(previous)
            self._register(slot)
        return previous

    def put(self, key: K, computation: Callable[[], T]) -> MemoizedValue[T] | None:
        """Map ``key`` to a lazy slot; return the displaced slot, if any."""
        return self._store(key, self._new_slot(computation))

    def get_slot(self, key: K) -> MemoizedValue[T]:
        with self._lock:
            try:
                return self._slots[key]
            except KeyError:
                raise SlotKeyError(key) from None

    def remove_slot(self, key: K) -> MemoizedValue[T]:
        """Remove and return the slot for ``key`` without materializing it."""
        with self._lock:
            try:
                slot = self._slots.pop(key)
            except KeyError:
                raise SlotKeyError(key) from None
            return self._unregister(slot)

    def replace(self, key: K, value: T) -> T | None:
        """Replace the value for an existing key; return the old value.

        Absent keys are left absent and None is returned.
        """
        with self._lock:
            previous = self._slots.get(key)
            if previous is None:
                return None
            # Read before unregistering, while the old slot may still be cached
            old_value = previous.get()
            self._store(key, MemoizedValue.constant(value))
        return old_value

    def replace_if_equal(self, key: K, old_value: T, new_value: T) -> bool:
        with self._lock:
            slot = self._slots.get(key)
            if slot is None or slot.get() != old_value:
                return False
            self._store(key, MemoizedValue.constant(new_value))
            return True

    def remove_if_equal(self, key: K, value: T) -> bool:
        """Remove ``key`` only if its (materialized) value equals ``value``."""
        with self._lock:
            slot = self._slots.get(key)
            if slot is None or slot.get() != value:
                return False
            self.remove_slot(key)
            return True

    def materialized_keys(self) -> list[K]:
        with self._lock:
            entries = list(self._slots.items())
        return [key for key, slot in entries if slot.has_run()]

    # -------------------------------------------------------------------------
    # MutableMapping protocol
    # -------------------------------------------------------------------------

    def __getitem__(self, key: K) -> T:
        return self.get_slot(key).get()

    def __setitem__(self, key: K, value: T) -> None:
        self._store(key, MemoizedValue.constant(value))

    def __delitem__(self, key: K) -> None:
        self.remove_slot(key)

    def pop(self, key: K, default: Any = _MISSING) -> T | Any:
        """Remove ``key`` and return its (materialized) value."""
        with self._lock:
            slot = self._slots.pop(key, None)
            if slot is not None:
                self._unregister(slot)
        if slot is None:
            if default is _MISSING:
                raise SlotKeyError(key)
            return default
        return slot.get()

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[K]:
        with self._lock:
            return iter(list(self._slots))

    def clear(self) -> None:
        """Remove every entry without materializing any value."""
        with self._lock:
            slots, self._slots = self._slots, {}
            for slot in slots.values():
                self._unregister(slot)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(size={len(self)}, "
            f"materialized={len(self.materialized_keys())})"
        )


class LRULazyMap(_WorkingSetHooks, LazyMap[K, T]):
    """LazyMap that keeps at most ``working_set_size`` values materialized."""

    def __init__(self, working_set_size: int, clock: GenerationClock | None = None) -> None:
        super().__init__(clock)
        self._working_set = WorkingSet(working_set_size, label="map")
