"""Single-slot memoized values.

A MemoizedValue wraps a zero-argument computation and runs it at most once
per generation: the first ``get()`` computes and stores the result, later
calls return the stored result until the value is reset explicitly or the
generation clock it was created with advances.

Concurrent first access is single-flight. One thread runs the computation
while the others block on the slot's compute lock and then read the stored
result. A computation that raises leaves the slot unmaterialized, so the
next ``get()`` simply tries again.

Variants:
- PinnedValue: never invalidated (``run_once`` / ``constant``)
- ErrorCachingValue: stores a raised exception as the result (``of_throwing``)

Usage:
    from memocache.cache.memoized import MemoizedValue

    config = MemoizedValue.of(load_config)
    config.get()        # runs load_config
    config.get()        # cached
    config.reset()      # next get() runs load_config again
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from memocache import metrics
from memocache.cache.generation import GenerationClock, get_default_clock, invalidate_all
from memocache.errors import ComputationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

InvocationListener = Callable[[], None]


class MemoizedValue(Generic[T]):
    """Thread-safe, at-most-once-per-generation memoizer.

    Identity semantics: two values are equal only if they are the same
    object, so slots can be used as dict keys even when their cached
    results compare equal.
    """

    def __init__(
        self,
        computation: Callable[[], T],
        clock: GenerationClock | None = None,
    ) -> None:
        if not callable(computation):
            raise TypeError(f"computation must be callable, got {type(computation).__name__}")
        self._computation = computation
        self._clock = clock or get_default_clock()
        self._value: T | None = None
        self._materialized = False
        self._stamp = 0
        # Most values never get listeners
        self._listeners: list[InvocationListener] = []
        # Guards the cached state; held only for short reads and writes
        self._state_lock = threading.Lock()
        # Single-flight guard; reentrant like a synchronized block
        self._compute_lock = threading.RLock()

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def of(cls, computation: Callable[[], T], clock: GenerationClock | None = None) -> MemoizedValue[T]:
        return MemoizedValue(computation, clock)

    @classmethod
    def run_once(cls, computation: Callable[[], T]) -> MemoizedValue[T]:
        """Memoize ``computation`` so that it runs exactly once.

        The returned value ignores both ``reset()`` and generation bumps.
        """
        return PinnedValue(computation)

    @classmethod
    def constant(cls, value: T) -> MemoizedValue[T]:
        """Wrap an already known value as a pinned slot."""
        return PinnedValue(lambda: value)

    @classmethod
    def of_callable(
        cls,
        computation: Callable[[], T],
        clock: GenerationClock | None = None,
    ) -> MemoizedValue[T]:
        """Memoize ``computation``, re-raising any failure as ComputationError."""

        def wrapped() -> T:
            try:
                return computation()
            except Exception as e:
                raise ComputationError(
                    f"memoized computation failed: {e}",
                    context={"error_type": type(e).__name__},
                ) from e

        return MemoizedValue(wrapped, clock)

    @classmethod
    def of_throwing(
        cls,
        computation: Callable[[], T],
        clock: GenerationClock | None = None,
    ) -> ErrorCachingValue[T]:
        return ErrorCachingValue(computation, clock)

    @staticmethod
    def reset_all_caches() -> int:
        """Advance the default generation clock.

        Every non-pinned value created without an explicit clock recomputes
        on its next ``get()``. Returns the new generation.
        """
        return invalidate_all()

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: InvocationListener) -> None:
        """Register a callback fired after each actual (re)computation."""
        if listener is None:
            raise TypeError("listener can not be None")
        with self._state_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: InvocationListener) -> bool:
        if listener is None:
            raise TypeError("listener can not be None")
        with self._state_lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
            return True

    def _fire_listeners(self) -> None:
        with self._state_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def clock(self) -> GenerationClock:
        return self._clock

    def _is_stale(self) -> bool:
        return self._stamp != self._clock.current

    def _cached(self) -> tuple[bool, T | None]:
        with self._state_lock:
            if self._materialized and not self._is_stale():
                return True, self._value
            return False, None

    def has_run(self) -> bool:
        """True if a result for the current generation is stored."""
        return self._cached()[0]

    def get(self) -> T:
        """Return the memoized result, computing it first if needed."""
        hit, value = self._cached()
        if hit:
            return value
        with self._compute_lock:
            hit, value = self._cached()
            if hit:
                return value
            stamp = self._clock.current
            value = self._invoke()
            with self._state_lock:
                self._value = value
                self._stamp = stamp
                self._materialized = True
        self._fire_listeners()
        return value

    __call__ = get

    def _invoke(self) -> T:
        start = time.perf_counter()
        try:
            value = self._computation()
        except BaseException:
            metrics.record_computation(time.perf_counter() - start, success=False)
            raise
        metrics.record_computation(time.perf_counter() - start, success=True)
        return value

    def reset(self) -> None:
        """Discard the stored result; the next ``get()`` recomputes.

        Safe against a concurrent ``get()``: a computation already in flight
        still stores its result when it finishes.
        """
        with self._state_lock:
            self._materialized = False
            self._value = None

    reset_cache = reset

    def __repr__(self) -> str:
        return f"{type(self).__name__}(materialized={self.has_run()})"


class PinnedValue(MemoizedValue[T]):
    """A memoized value that, once computed, is never invalidated."""

    def __init__(self, computation: Callable[[], T]) -> None:
        super().__init__(computation)

    def _is_stale(self) -> bool:
        return False

    def reset(self) -> None:
        pass

    reset_cache = reset


class ErrorCachingValue(MemoizedValue[T]):
    """A memoized value that also caches a raised exception.

    If the computation raises an ``Exception``, ``get()`` returns None and
    the exception is stored in ``thrown`` for the rest of the generation.
    ``BaseException`` subclasses (KeyboardInterrupt, SystemExit) are not
    cached and propagate normally.
    """

    def __init__(
        self,
        computation: Callable[[], T],
        clock: GenerationClock | None = None,
    ) -> None:
        super().__init__(computation, clock)
        self._thrown: BaseException | None = None

    def _invoke(self) -> T | None:
        try:
            value = super()._invoke()
        except Exception as e:
            logger.debug(f"[ErrorCachingValue] Caching failure of computation: {e!r}")
            self._thrown = e
            return None
        self._thrown = None
        return value

    @property
    def thrown(self) -> BaseException | None:
        """Compute if needed, then return the cached exception (or None)."""
        self.get()
        return self._thrown

    def get_or_raise(self) -> T:
        """Like ``get()`` but re-raises a cached failure."""
        value = self.get()
        error = self._thrown
        if error is not None:
            raise error
        return value

    def reset(self) -> None:
        with self._state_lock:
            self._materialized = False
            self._value = None
            self._thrown = None

    reset_cache = reset


def memoize(computation: Callable[[], Any]) -> MemoizedValue[Any]:
    """Decorator form of ``MemoizedValue.of`` for zero-argument functions."""
    return MemoizedValue.of(computation)
