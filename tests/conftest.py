"""
Shared pytest fixtures for memocache tests.

Fixtures are function-scoped so that process-wide state (settings, the
default generation clock, the global invalidator) never leaks between tests.
"""

import gc

import pytest

from memocache.cache.generation import GenerationClock
from memocache.cache.invalidation import reset_cache_invalidator
from memocache.config import reset_settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Drop cached settings and memocache env overrides around each test."""
    for var in (
        "MEMOCACHE_DEFAULT_CAPACITY",
        "MEMOCACHE_DEFAULT_LOAD_FACTOR",
        "MEMOCACHE_PRESSURE_CHECK_INTERVAL",
        "MEMOCACHE_METRICS_ENABLED",
        "MEMOCACHE_MAX_MEMORY_GB",
        "MEMOCACHE_SYSTEM_RESERVE",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    reset_cache_invalidator()
    yield
    reset_settings()
    reset_cache_invalidator()


@pytest.fixture
def clock():
    """A private generation clock, so invalidate-all tests stay isolated."""
    return GenerationClock(name="test")


@pytest.fixture
def counter():
    """Zero-argument computation returning 0, 1, 2, ... on successive calls."""

    class Counter:
        def __init__(self):
            self.calls = 0

        def __call__(self):
            value = self.calls
            self.calls += 1
            return value

    return Counter()


@pytest.fixture
def full_gc():
    """Run a full collection; CPython frees most values by refcount already."""

    def collect():
        for _ in range(3):
            gc.collect()

    return collect


class Blob:
    """Weak-referenceable value with equality by payload."""

    def __init__(self, payload):
        self.payload = payload

    def __eq__(self, other):
        return isinstance(other, Blob) and other.payload == self.payload

    def __hash__(self):
        return hash(self.payload)

    def __repr__(self):
        return f"Blob({self.payload!r})"


@pytest.fixture
def blob():
    return Blob
