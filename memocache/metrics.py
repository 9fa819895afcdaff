"""Prometheus metrics for memocache.

This module centralises counters and histograms so that memoized values,
bounded caches and lazy collections can record lightweight telemetry without
each one managing its own metric instances. Label values are kept to small
fixed sets (cache type, strength, outcome) so cardinality stays bounded no
matter how many caches a process creates.

Recording is skipped entirely when ``CacheSettings.metrics_enabled`` is
false.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram

from memocache.config import get_settings

MEMOIZED_COMPUTATIONS: Final[Counter] = Counter(
    "memocache_computations_total",
    "Total memoized computations executed, labeled by outcome.",
    labelnames=("outcome",),
)

MEMOIZED_COMPUTATION_LATENCY: Final[Histogram] = Histogram(
    "memocache_computation_latency_seconds",
    "Wall time spent inside memoized computations in seconds.",
    # Memoized work ranges from microsecond lookups to multi-second loads.
    buckets=(0.0001, 0.001, 0.01, 0.1, 0.5, 1.0, 5.0, 30.0),
)

CACHE_LOOKUPS: Final[Counter] = Counter(
    "memocache_cache_lookups_total",
    "Total bounded cache lookups, labeled by cache_type and outcome.",
    labelnames=("cache_type", "outcome"),
)

CACHE_EVICTIONS: Final[Counter] = Counter(
    "memocache_cache_evictions_total",
    "Total capacity evictions from LRU caches, labeled by cache_type.",
    labelnames=("cache_type",),
)

CACHE_RECLAIMED: Final[Counter] = Counter(
    "memocache_cache_reclaimed_total",
    "Total entries dropped because their value was garbage collected.",
    labelnames=("strength",),
)

SOFT_REFERENCE_RELEASES: Final[Counter] = Counter(
    "memocache_soft_reference_releases_total",
    "Total number of soft-retained values released under memory pressure.",
)

GROUP_RESETS: Final[Counter] = Counter(
    "memocache_group_resets_total",
    "Total invalidation group reset_all() calls.",
)

GENERATION_BUMPS: Final[Counter] = Counter(
    "memocache_generation_bumps_total",
    "Total process-wide generation advances (invalidate-all).",
)

WORKING_SET_RESETS: Final[Counter] = Counter(
    "memocache_working_set_resets_total",
    "Total lazy slots reset because they fell out of a working set.",
    labelnames=("collection",),
)

INVALIDATION_RUNS: Final[Counter] = Counter(
    "memocache_invalidation_runs_total",
    "Total CacheInvalidator runs, labeled by scope (full or selective) and outcome.",
    labelnames=("scope", "outcome"),
)


def _enabled() -> bool:
    return get_settings().metrics_enabled


def record_computation(duration_seconds: float, success: bool) -> None:
    """Record one memoized computation.

    Args:
        duration_seconds: Time spent inside the wrapped computation
        success: False if the computation raised
    """
    if not _enabled():
        return
    MEMOIZED_COMPUTATIONS.labels("success" if success else "error").inc()
    MEMOIZED_COMPUTATION_LATENCY.observe(duration_seconds)


def record_cache_lookup(cache_type: str, hit: bool) -> None:
    """Record a cache lookup (e.g. cache_type="lru", "soft", "weak_lru")."""
    if not _enabled():
        return
    CACHE_LOOKUPS.labels(cache_type, "hit" if hit else "miss").inc()


def record_evictions(cache_type: str, count: int = 1) -> None:
    if count and _enabled():
        CACHE_EVICTIONS.labels(cache_type).inc(count)


def record_reclaimed(strength: str, count: int) -> None:
    """Record entries reconciled away after their values were collected.

    Args:
        strength: Reference strength of the cache ("soft" or "weak")
        count: Number of entries dropped in this reconciliation pass
    """
    if count and _enabled():
        CACHE_RECLAIMED.labels(strength).inc(count)


def record_soft_release(count: int) -> None:
    if count and _enabled():
        SOFT_REFERENCE_RELEASES.inc(count)


def record_group_reset() -> None:
    if _enabled():
        GROUP_RESETS.inc()


def record_generation_bump() -> None:
    if _enabled():
        GENERATION_BUMPS.inc()


def record_working_set_reset(collection: str) -> None:
    """Record a slot reset by a working-set tracker ("list" or "map")."""
    if _enabled():
        WORKING_SET_RESETS.labels(collection).inc()


def record_invalidation_run(scope: str, success: bool) -> None:
    if _enabled():
        INVALIDATION_RUNS.labels(scope, "success" if success else "partial").inc()
