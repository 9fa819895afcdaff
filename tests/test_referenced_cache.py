"""Unit tests for soft- and weak-valued ReferencedCache."""

import gc
import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from memocache.cache.factory import (
    create_soft_value_cache,
    create_soft_value_lru_cache,
    create_weak_value_cache,
)
from memocache.cache.references import ReferencedCache, ReferenceStrength
from memocache.errors import ConfigurationError, UnreferenceableValueError


def _soft(**options):
    options.setdefault("pressure_probe", lambda: False)
    options.setdefault("pressure_check_interval", 0.0)
    return ReferencedCache(ReferenceStrength.SOFT, **options)


class TestReferenceStrength:
    """Tests for strength parsing."""

    def test_parse(self) -> None:
        assert ReferenceStrength.parse(None) is ReferenceStrength.STRONG
        assert ReferenceStrength.parse("WEAK") is ReferenceStrength.WEAK
        assert ReferenceStrength.parse(ReferenceStrength.SOFT) is ReferenceStrength.SOFT

    def test_parse_unknown(self) -> None:
        with pytest.raises(ConfigurationError):
            ReferenceStrength.parse("phantom")

    def test_strong_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            ReferencedCache(ReferenceStrength.STRONG)


class TestWeakValues:
    """Tests for weak-valued caches."""

    def test_live_value_is_retrievable(self, blob) -> None:
        cache = ReferencedCache("weak")
        value = blob("payload")
        cache["k"] = value
        assert cache["k"] is value
        assert "k" in cache
        assert len(cache) == 1

    def test_unreachable_value_disappears(self, blob, full_gc) -> None:
        cache = ReferencedCache("weak")
        cache["k"] = blob("payload")
        full_gc()
        assert "k" not in cache
        assert len(cache) == 0
        assert cache.get("k") is None
        with pytest.raises(KeyError):
            cache["k"]

    def test_numpy_buffers(self, full_gc) -> None:
        cache = ReferencedCache("weak")
        kept = np.zeros(1024)
        cache["kept"] = kept
        cache["dropped"] = np.ones(1024)
        full_gc()
        assert list(cache) == ["kept"]
        assert cache["kept"] is kept

    def test_unreferenceable_value_rejected(self) -> None:
        cache = ReferencedCache("weak")
        with pytest.raises(UnreferenceableValueError):
            cache["k"] = 42
        with pytest.raises(TypeError):
            cache["k"] = ("tuple",)
        assert len(cache) == 0

    def test_replaced_value_death_keeps_new_entry(self, blob, full_gc) -> None:
        """Reclaiming a replaced value must not drop the key's new value."""
        cache = ReferencedCache("weak")
        old = blob("old")
        new = blob("new")
        cache["k"] = old
        assert cache.put("k", new) is old
        del old
        full_gc()
        assert cache["k"] is new

    def test_delete_and_pop(self, blob) -> None:
        cache = ReferencedCache("weak")
        value = blob(1)
        cache["a"] = value
        cache["b"] = value
        del cache["a"]
        assert "a" not in cache
        assert cache.pop("b") is value
        assert cache.pop("b", "default") == "default"
        with pytest.raises(KeyError):
            cache.pop("b")

    def test_items_snapshot_skips_dead(self, blob, full_gc) -> None:
        cache = ReferencedCache("weak")
        alive = blob("alive")
        cache["alive"] = alive
        cache["dead"] = blob("dead")
        full_gc()
        assert cache.items() == [("alive", alive)]
        assert cache.values() == [alive]

    def test_clear_and_reset(self, blob) -> None:
        cache = ReferencedCache("weak")
        value = blob(1)
        cache["a"] = value
        cache.reset()
        assert len(cache) == 0


class TestWeakLRU:
    """Tests for capacity-bounded weak caches."""

    def test_capacity_then_reclamation(self, blob, full_gc) -> None:
        cache = ReferencedCache("weak", max_entries=2)
        values = [blob(i) for i in range(3)]
        for i, value in enumerate(values):
            cache[i] = value
        assert len(cache) == 2
        assert 0 not in cache

        del values, value
        full_gc()
        assert len(cache) == 0

    def test_eviction_callback_receives_value(self, blob) -> None:
        evicted = []
        cache = ReferencedCache(
            "weak", max_entries=1, on_evict=lambda k, v: evicted.append((k, v))
        )
        first = blob("first")
        second = blob("second")
        cache["a"] = first
        cache["b"] = second
        assert evicted == [("a", first)]

    def test_no_callback_for_already_reclaimed_value(self, blob, full_gc) -> None:
        evicted = []
        cache = ReferencedCache(
            "weak", max_entries=2, on_evict=lambda k, v: evicted.append(k)
        )
        kept = blob("kept")
        cache["gone"] = blob("gone")
        cache["kept"] = kept
        full_gc()
        cache["new"] = blob("new")
        assert evicted == []
        assert "kept" in cache


class TestSoftValues:
    """Tests for soft-valued caches."""

    def test_survives_without_external_reference(self, blob, full_gc) -> None:
        cache = _soft()
        cache["k"] = blob("payload")
        full_gc()
        assert cache["k"] == blob("payload")

    def test_explicit_release(self, blob, full_gc) -> None:
        cache = _soft()
        kept = blob("kept")
        cache["kept"] = kept
        cache["dropped"] = blob("dropped")
        assert cache.release_soft_references() == 2
        full_gc()
        assert list(cache) == ["kept"]

    def test_released_under_memory_pressure(self, blob, full_gc) -> None:
        pressure = {"active": False}
        cache = _soft(pressure_probe=lambda: pressure["active"])
        cache["k"] = blob("payload")
        assert len(cache) == 1

        pressure["active"] = True
        full_gc()
        assert len(cache) == 0

    def test_probe_is_throttled(self, blob) -> None:
        calls = []

        def probe():
            calls.append(1)
            return False

        cache = _soft(pressure_probe=probe, pressure_check_interval=3600.0)
        cache["k"] = blob(1)
        for _ in range(10):
            len(cache)
        assert len(calls) == 1

    def test_soft_lru(self, blob) -> None:
        cache = _soft(max_entries=2)
        for i in range(4):
            cache[i] = blob(i)
        assert sorted(cache) == [2, 3]
        assert cache.is_lru

    def test_default_probe_uses_memory_config(self, blob) -> None:
        from memocache.utils.memory_config import MemoryConfig

        config = MemoryConfig(max_memory_gb=1.0, system_reserve=0.1)
        cache = ReferencedCache("soft", memory_config=config, pressure_check_interval=0.0)
        assert cache._pressure_probe == config.is_under_pressure


class TestSoftBuiltinValues:
    """Soft caches hold values that do not support weak references."""

    @pytest.mark.parametrize("value", [b"x" * 1024, [1, 2, 3], {"a": 1}, "text", 42, ("t",)])
    def test_unbounded_holds_builtin(self, value, full_gc) -> None:
        cache = create_soft_value_cache(pressure_probe=lambda: False)
        cache["k"] = value
        full_gc()
        assert cache["k"] == value
        assert "k" in cache
        assert cache.items() == [("k", value)]

    def test_lru_holds_builtin(self) -> None:
        evicted = []
        cache = create_soft_value_lru_cache(
            2,
            on_evict=lambda k, v: evicted.append((k, v)),
            pressure_probe=lambda: False,
        )
        cache["a"] = [1, 2, 3]
        cache["b"] = b"frame"
        cache["c"] = {"c": 3}
        assert evicted == [("a", [1, 2, 3])]
        assert cache["b"] == b"frame"
        assert sorted(cache) == ["b", "c"]

    def test_released_builtin_disappears(self) -> None:
        cache = _soft()
        frame = b"y" * 1024
        cache["frame"] = frame
        cache["list"] = [1, 2]
        assert cache.release_soft_references() == 2
        assert len(cache) == 0
        assert cache.get("frame") is None

    def test_put_returns_previous_builtin(self) -> None:
        cache = _soft()
        cache["k"] = [1]
        assert cache.put("k", [2]) == [1]
        assert cache.pop("k") == [2]
        assert len(cache._ref_keys) == 0

    def test_none_value_is_stored(self) -> None:
        cache = _soft()
        cache["k"] = None
        assert "k" in cache
        assert cache["k"] is None

    def test_weak_still_rejects_builtin(self) -> None:
        with pytest.raises(UnreferenceableValueError):
            create_weak_value_cache()["k"] = b"x"


class TestReclaimableConcurrency:
    """Reconciliation must stay consistent with concurrent get/put/remove."""

    @pytest.mark.parametrize("strength", ["weak", "soft"])
    def test_concurrent_access_while_values_die(self, strength, blob, full_gc) -> None:
        capacity = 8
        workers = 6
        if strength == "soft":
            cache = _soft(max_entries=capacity)
        else:
            cache = ReferencedCache("weak", max_entries=capacity)
        barrier = threading.Barrier(workers)
        overflow = []

        def worker(worker_id):
            held = []
            barrier.wait()
            for i in range(400):
                key = (worker_id + i) % 16
                value = blob((worker_id, i)) if strength == "weak" else [worker_id, i]
                cache[key] = value
                held.append(value)
                if len(held) > 3:
                    held.pop(0)
                cache.get((key + 5) % 16)
                if i % 7 == 0:
                    cache.pop((key + 3) % 16, None)
                if i % 50 == 0:
                    gc.collect()
                    if strength == "soft":
                        cache.release_soft_references()
                size = len(cache)
                if size > capacity:
                    overflow.append(size)
                cache.items()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            for f in [pool.submit(worker, w) for w in range(workers)]:
                f.result()

        full_gc()
        assert overflow == []
        size = len(cache)
        assert size <= capacity
        assert len(cache._ref_keys) == len(cache._refs) == size
        assert len(cache._retained) <= size
