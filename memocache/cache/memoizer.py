"""Keyed single-flight memoization.

``Memoizer.compute_if_absent(key, fn)`` runs ``fn(key)`` at most once per key
even with many concurrent callers: the first caller for a key publishes a
Future and computes on its own thread, later callers wait on that Future.

A computation that raises is removed from the table before the exception
reaches any caller, so the next call for the key runs again.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from concurrent.futures import CancelledError, Future
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class Memoizer(Generic[K, V]):
    """Thread-safe ``key -> fn(key)`` table with per-key single flight."""

    def __init__(self) -> None:
        self._futures: dict[K, Future] = {}
        self._lock = threading.Lock()

    def compute_if_absent(self, key: K, computation: Callable[[K], V]) -> V:
        """Return the memoized ``computation(key)``, computing it if needed.

        Raises:
            Whatever ``computation`` raised, to the computing caller and to
            every caller waiting on the same attempt.
        """
        while True:
            with self._lock:
                future = self._futures.get(key)
                owner = future is None
                if owner:
                    future = Future()
                    future.set_running_or_notify_cancel()
                    self._futures[key] = future
            if owner:
                self._run(key, future, computation)
            try:
                return future.result()
            except CancelledError:
                self._discard(key, future)

    def _run(self, key: K, future: Future, computation: Callable[[K], V]) -> None:
        try:
            value = computation(key)
        except BaseException as e:
            self._discard(key, future)
            logger.debug(f"[Memoizer] Computation for {key!r} failed: {e!r}")
            future.set_exception(e)
            if not isinstance(e, Exception):
                raise
            return
        future.set_result(value)

    def _discard(self, key: K, future: Future) -> None:
        with self._lock:
            if self._futures.get(key) is future:
                del self._futures[key]

    def clear(self) -> None:
        with self._lock:
            self._futures.clear()

    reset = clear

    def __len__(self) -> int:
        return len(self._futures)

    def __contains__(self, key: object) -> bool:
        """True if ``key`` has a completed or in-flight computation."""
        return key in self._futures

    def __repr__(self) -> str:
        return f"Memoizer(entries={len(self)})"
