"""Named, reported bulk invalidation of registered caches.

A CacheInvalidator keeps a registry of named targets and resets them all in
one call, isolating failures per target and returning a report of what was
cleared. Use it where an InvalidationGroup is too silent, e.g. when an
upstream data source changes and you want to log exactly which caches were
dropped and how long each took.

Targets are either resettable objects (anything with ``reset()``: memoized
values, caches, lazy collections, groups, memoizers) or zero-argument
callables that clear something and return the number of items cleared.

Usage:
    from memocache.cache.invalidation import get_cache_invalidator

    invalidator = get_cache_invalidator()
    invalidator.register("schemas", schema_cache)
    invalidator.register("thumbnails", thumbnail_group)

    result = invalidator.invalidate_all(trigger_reason="schema_reload")
    if not result.total_success:
        ...
"""

from __future__ import annotations

import gc
import logging
import threading
import time
from collections.abc import Callable, Iterable, Sized
from dataclasses import dataclass, field
from typing import Any

from memocache import metrics
from memocache.cache.generation import GenerationClock, get_default_clock
from memocache.cache.resettable import Resettable

logger = logging.getLogger(__name__)

InvalidationTarget = Resettable | Callable[[], int]


@dataclass
class CacheInvalidationResult:
    """Result of invalidating a single registered target."""
    cache_name: str
    success: bool
    items_cleared: int = 0
    error: str | None = None
    duration_ms: float = 0.0


@dataclass
class FullInvalidationResult:
    """Result of invalidating several targets in one run."""
    total_success: bool = True
    caches_cleared: int = 0
    total_items_cleared: int = 0
    results: list[CacheInvalidationResult] = field(default_factory=list)
    trigger_reason: str = ""
    generation: int | None = None
    skipped: bool = False


def _as_invalidator(target: InvalidationTarget) -> Callable[[], int]:
    # Resettable first: a MemoizedValue is callable too, but calling it computes
    if isinstance(target, Resettable):
        def invalidate() -> int:
            count = len(target) if isinstance(target, Sized) else 0
            target.reset()
            return count

        return invalidate
    if callable(target):
        return target
    raise TypeError(f"{type(target).__name__} is neither resettable nor callable")


class CacheInvalidator:
    """Registry of named caches with failure-isolated bulk invalidation."""

    def __init__(
        self,
        invalidation_cooldown_seconds: float = 0.0,
        clock: GenerationClock | None = None,
    ):
        """Initialize the invalidator.

        Args:
            invalidation_cooldown_seconds: Minimum time between full
                invalidations; calls inside the window are skipped
            clock: Generation clock advanced by ``bump_generation``
                (defaults to the process-wide clock)
        """
        self.invalidation_cooldown_seconds = invalidation_cooldown_seconds
        self._clock = clock or get_default_clock()
        self._last_invalidation_time: float = 0.0
        self._invalidation_count: int = 0
        self._cache_invalidators: dict[str, Callable[[], int]] = {}
        self._lock = threading.RLock()

    def register(self, name: str, target: InvalidationTarget) -> None:
        """Register (or replace) a named invalidation target."""
        invalidator = _as_invalidator(target)
        with self._lock:
            self._cache_invalidators[name] = invalidator
        logger.debug(f"[CacheInvalidator] Registered invalidator for {name}")

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._cache_invalidators.pop(name, None) is not None

    @property
    def registered(self) -> list[str]:
        with self._lock:
            return list(self._cache_invalidators)

    def invalidate_all(
        self,
        trigger_reason: str = "manual",
        bump_generation: bool = True,
        collect_garbage: bool = False,
        force: bool = False,
    ) -> FullInvalidationResult:
        """Invalidate every registered target.

        Args:
            trigger_reason: Why invalidation was triggered (logged and returned)
            bump_generation: Also advance the generation clock, invalidating
                every memoized value that uses it
            collect_garbage: Run ``gc.collect()`` afterwards so weak and soft
                caches can reclaim the released values
            force: Ignore the cooldown window

        Returns:
            FullInvalidationResult with one entry per target; ``skipped`` is
            True if the call fell inside the cooldown window
        """
        with self._lock:
            now = time.time()
            if (
                not force
                and self._invalidation_count
                and now - self._last_invalidation_time < self.invalidation_cooldown_seconds
            ):
                logger.debug("[CacheInvalidator] Invalidation cooldown active, skipping")
                return FullInvalidationResult(trigger_reason=trigger_reason, skipped=True)
            targets = list(self._cache_invalidators.items())
            self._last_invalidation_time = now
            self._invalidation_count += 1

        result = self._run("full", targets, trigger_reason, bump_generation, collect_garbage)
        logger.info(
            f"[CacheInvalidator] Invalidated {result.caches_cleared} caches, "
            f"{result.total_items_cleared} items cleared (reason={trigger_reason})"
        )
        return result

    def invalidate(
        self,
        names: Iterable[str],
        trigger_reason: str = "selective",
        bump_generation: bool = False,
        collect_garbage: bool = False,
    ) -> FullInvalidationResult:
        """Invalidate only the named targets; unknown names are ignored.

        Selective runs are not subject to the cooldown window.
        """
        with self._lock:
            targets = [
                (name, self._cache_invalidators[name])
                for name in names
                if name in self._cache_invalidators
            ]

        result = self._run("selective", targets, trigger_reason, bump_generation, collect_garbage)
        if result.caches_cleared > 0:
            logger.debug(
                f"[CacheInvalidator] Selective invalidation: {result.caches_cleared} caches, "
                f"{result.total_items_cleared} items (reason={trigger_reason})"
            )
        return result

    def _run(
        self,
        scope: str,
        targets: list[tuple[str, Callable[[], int]]],
        trigger_reason: str,
        bump_generation: bool,
        collect_garbage: bool,
    ) -> FullInvalidationResult:
        result = FullInvalidationResult(trigger_reason=trigger_reason)

        for cache_name, invalidator in targets:
            cache_result = self._invalidate_cache(cache_name, invalidator)
            result.results.append(cache_result)

            if cache_result.success:
                result.caches_cleared += 1
                result.total_items_cleared += cache_result.items_cleared
            else:
                result.total_success = False

        if bump_generation:
            result.generation = self._clock.advance()
            logger.info(
                f"[CacheInvalidator] Advanced generation clock {self._clock.name!r} "
                f"to {result.generation}"
            )

        if collect_garbage:
            collected = gc.collect()
            logger.debug(f"[CacheInvalidator] gc.collect() freed {collected} objects")

        metrics.record_invalidation_run(scope, result.total_success)
        return result

    def _invalidate_cache(
        self,
        cache_name: str,
        invalidator: Callable[[], int],
    ) -> CacheInvalidationResult:
        start_time = time.time()

        try:
            items_cleared = invalidator()
            duration_ms = (time.time() - start_time) * 1000

            return CacheInvalidationResult(
                cache_name=cache_name,
                success=True,
                items_cleared=int(items_cleared or 0),
                duration_ms=duration_ms,
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(f"[CacheInvalidator] Failed to invalidate {cache_name}: {e}")

            return CacheInvalidationResult(
                cache_name=cache_name,
                success=False,
                error=str(e),
                duration_ms=duration_ms,
            )

    def get_stats(self) -> dict[str, Any]:
        """Get invalidation statistics.

        Returns:
            Dict with invalidation stats
        """
        with self._lock:
            return {
                "invalidation_count": self._invalidation_count,
                "last_invalidation_time": self._last_invalidation_time,
                "registered_caches": list(self._cache_invalidators.keys()),
                "cooldown_seconds": self.invalidation_cooldown_seconds,
                "generation": self._clock.current,
            }


# Singleton cache invalidator
_cache_invalidator: CacheInvalidator | None = None
_singleton_lock = threading.Lock()


def get_cache_invalidator() -> CacheInvalidator:
    """Get the process-wide cache invalidator, creating it on first use."""
    global _cache_invalidator

    with _singleton_lock:
        if _cache_invalidator is None:
            _cache_invalidator = CacheInvalidator()
        return _cache_invalidator


def reset_cache_invalidator() -> None:
    """Drop the process-wide invalidator and its registrations (tests)."""
    global _cache_invalidator

    with _singleton_lock:
        _cache_invalidator = None


def invalidate_all_caches(
    trigger_reason: str = "manual",
    collect_garbage: bool = False,
) -> FullInvalidationResult:
    """Convenience function to invalidate every globally registered cache.

    Args:
        trigger_reason: Why invalidation was triggered
        collect_garbage: Run ``gc.collect()`` afterwards

    Returns:
        FullInvalidationResult with details
    """
    return get_cache_invalidator().invalidate_all(
        trigger_reason=trigger_reason,
        collect_garbage=collect_garbage,
    )
