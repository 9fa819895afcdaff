"""Unit tests for lazy lists and maps and their LRU working-set variants."""

import string

import pytest

from memocache.cache.group import InvalidationGroup
from memocache.cache.lazy_collections import LazyList, LazyMap, LRULazyList, LRULazyMap
from memocache.errors import ConfigurationError, SlotIndexError, SlotKeyError


def _tracked(calls, value):
    def compute():
        calls.append(value)
        return value

    return compute


class TestLazyList:
    """Tests for LazyList."""

    def test_elements_computed_on_first_read(self) -> None:
        calls = []
        lst = LazyList()
        for i in range(3):
            lst.add(_tracked(calls, i))
        assert calls == []
        assert lst[1] == 1
        assert calls == [1]
        assert lst[1] == 1
        assert calls == [1]

    def test_add_returns_slot(self) -> None:
        lst = LazyList()
        slot = lst.add(lambda: "x")
        assert lst.get_slot(0) is slot
        assert not slot.has_run()

    def test_add_at_shifts(self) -> None:
        lst = LazyList()
        lst.add(lambda: "a")
        lst.add(lambda: "c")
        lst.add_at(1, lambda: "b")
        assert list(lst) == ["a", "b", "c"]

    def test_list_protocol_values_are_constants(self) -> None:
        lst = LazyList()
        lst.append("a")
        lst.insert(0, "z")
        lst.extend(["b", "c"])
        assert list(lst) == ["z", "a", "b", "c"]
        assert len(lst) == 4

    def test_set_returns_previous_value(self) -> None:
        calls = []
        lst = LazyList()
        lst.add(_tracked(calls, "old"))
        assert lst.set(0, "new") == "old"
        assert lst[0] == "new"

    def test_setitem(self) -> None:
        lst = LazyList()
        lst.add(lambda: 1)
        lst[0] = 2
        assert lst[0] == 2

    def test_negative_indices(self) -> None:
        lst = LazyList()
        for i in range(3):
            lst.add(lambda i=i: i)
        assert lst[-1] == 2
        assert lst.get_slot(-3) is lst.get_slot(0)

    def test_slice_materializes_range(self) -> None:
        calls = []
        lst = LazyList()
        for i in range(5):
            lst.add(_tracked(calls, i))
        assert lst[1:3] == [1, 2]
        assert calls == [1, 2]

    @pytest.mark.parametrize("index", [3, -4, 100])
    def test_out_of_range(self, index) -> None:
        lst = LazyList()
        for i in range(3):
            lst.add(lambda i=i: i)
        with pytest.raises(SlotIndexError):
            lst[index]
        with pytest.raises(IndexError):
            lst.get_slot(index)

    def test_add_at_out_of_range(self) -> None:
        lst = LazyList()
        with pytest.raises(SlotIndexError):
            lst.add_at(1, lambda: 0)
        lst.add_at(0, lambda: 0)
        assert len(lst) == 1

    def test_delitem_does_not_materialize(self) -> None:
        calls = []
        lst = LazyList()
        lst.add(_tracked(calls, "a"))
        lst.add(_tracked(calls, "b"))
        del lst[0]
        assert calls == []
        assert list(lst) == ["b"]

    def test_pop_returns_value(self) -> None:
        lst = LazyList()
        lst.add(lambda: "a")
        lst.add(lambda: "b")
        assert lst.pop() == "b"
        assert lst.pop(0) == "a"
        assert len(lst) == 0

    def test_remove_slot(self) -> None:
        lst = LazyList()
        slot = lst.add(lambda: "a")
        assert lst.remove_slot(0) is slot
        assert slot not in lst.group

    def test_clear_does_not_materialize(self) -> None:
        calls = []
        lst = LazyList()
        for i in range(4):
            lst.add(_tracked(calls, i))
        lst.clear()
        assert calls == []
        assert len(lst) == 0
        assert len(lst.group) == 0

    def test_reset_cache_recomputes(self, counter) -> None:
        lst = LazyList()
        lst.add(counter)
        assert lst[0] == 0
        lst.reset_cache()
        assert lst.materialized_indices() == []
        assert lst[0] == 1

    def test_reset_keeps_constants(self) -> None:
        lst = LazyList()
        lst.append("constant")
        lst.reset()
        assert lst[0] == "constant"

    def test_reverse_does_not_materialize(self) -> None:
        calls = []
        lst = LazyList()
        for i in range(3):
            lst.add(_tracked(calls, i))
        lst.reverse()
        assert calls == []
        assert list(lst) == [2, 1, 0]

    def test_list_in_group(self, counter) -> None:
        group = InvalidationGroup()
        lst = group.add(LazyList())
        lst.add(counter)
        lst[0]
        group.reset_all()
        assert lst[0] == 1

    def test_negative_initial_size(self) -> None:
        with pytest.raises(ConfigurationError):
            LazyList(initial_size=-1)


class TestLRULazyList:
    """Tests for the working-set bound of LRULazyList."""

    def _counting_list(self, size, working_set_size, counter):
        lst = LRULazyList(working_set_size)
        for _ in range(size):
            lst.add(counter)
        return lst

    def test_second_pass_recomputes_evicted(self, counter) -> None:
        lst = self._counting_list(10, 5, counter)
        assert list(lst) == list(range(10))
        assert list(lst) == list(range(10, 20))

    def test_working_set_as_large_as_list(self, counter) -> None:
        lst = self._counting_list(10, 10, counter)
        assert list(lst) == list(range(10))
        assert list(lst) == list(range(10))

    def test_insert_in_middle_resets_least_recent(self, counter) -> None:
        lst = self._counting_list(10, 10, counter)
        list(lst)
        lst.add_at(4, counter)
        assert lst[4] == 10
        assert not lst.get_slot(0).has_run()
        assert lst[0] == 11
        assert not lst.get_slot(1).has_run()
        assert lst.get_slot(2).has_run()

    def test_only_last_k_materialized_after_streaming(self) -> None:
        lst = LRULazyList(working_set_size=5)
        for i in range(100):
            lst.add(lambda i=i: i * i)
        for _ in lst:
            pass
        assert lst.materialized_indices() == [95, 96, 97, 98, 99]
        assert lst.working_set() == [lst.get_slot(i) for i in range(95, 100)]

    def test_removed_slot_leaves_working_set(self, counter) -> None:
        lst = self._counting_list(3, 2, counter)
        lst[0]
        lst[1]
        removed = lst.remove_slot(0)
        lst[1]
        assert removed.has_run()
        assert lst.get_slot(0).has_run()
        assert len(lst.working_set()) == 2

    def test_clear_empties_working_set(self, counter) -> None:
        lst = self._counting_list(3, 2, counter)
        list(lst)
        lst.clear()
        assert lst.working_set() == []

    def test_constants_do_not_occupy_working_set(self, counter) -> None:
        lst = LRULazyList(working_set_size=1)
        lst.append("constant")
        lst.add(counter)
        assert lst[0] == "constant"
        assert lst[1] == 0
        assert lst.materialized_indices() == [0, 1]

    def test_invalid_working_set_size(self) -> None:
        with pytest.raises(ConfigurationError):
            LRULazyList(working_set_size=0)


class TestLazyMap:
    """Tests for LazyMap."""

    def test_values_computed_on_first_read(self) -> None:
        calls = []
        m = LazyMap()
        m.put("a", _tracked(calls, 1))
        m.put("b", _tracked(calls, 2))
        assert calls == []
        assert m["b"] == 2
        assert calls == [2]

    def test_put_returns_previous_slot(self) -> None:
        m = LazyMap()
        assert m.put("a", lambda: 1) is None
        first = m.get_slot("a")
        assert m.put("a", lambda: 2) is first
        assert m["a"] == 2
        assert first not in m.group

    def test_setitem_stores_constant(self) -> None:
        m = LazyMap()
        m["a"] = "value"
        m.reset_cache()
        assert m["a"] == "value"

    def test_missing_key(self) -> None:
        m = LazyMap()
        with pytest.raises(SlotKeyError):
            m["missing"]
        with pytest.raises(KeyError):
            m.get_slot("missing")
        with pytest.raises(SlotKeyError):
            del m["missing"]
        assert m.get("missing") is None

    def test_contains_and_keys_do_not_materialize(self) -> None:
        calls = []
        m = LazyMap()
        m.put("a", _tracked(calls, 1))
        assert "a" in m
        assert list(m) == ["a"]
        assert len(m) == 1
        assert calls == []

    def test_items_materialize(self) -> None:
        m = LazyMap()
        m.put("a", lambda: 1)
        m.put("b", lambda: 2)
        assert dict(m.items()) == {"a": 1, "b": 2}
        assert sorted(m.materialized_keys()) == ["a", "b"]

    def test_pop(self) -> None:
        m = LazyMap()
        m.put("a", lambda: 1)
        assert m.pop("a") == 1
        assert m.pop("a", None) is None
        with pytest.raises(SlotKeyError):
            m.pop("a")

    def test_delitem_does_not_materialize(self) -> None:
        calls = []
        m = LazyMap()
        m.put("a", _tracked(calls, 1))
        del m["a"]
        assert calls == []
        assert "a" not in m

    def test_replace(self) -> None:
        m = LazyMap()
        m.put("a", lambda: "old")
        assert m.replace("a", "new") == "old"
        assert m["a"] == "new"

    def test_replace_absent_key_does_not_insert(self) -> None:
        m = LazyMap()
        assert m.replace("a", "new") is None
        assert "a" not in m

    def test_replace_if_equal(self) -> None:
        m = LazyMap()
        m["a"] = 1
        assert m.replace_if_equal("a", 2, 3) is False
        assert m.replace_if_equal("a", 1, 3) is True
        assert m["a"] == 3

    def test_remove_if_equal(self) -> None:
        m = LazyMap()
        m.put("a", lambda: 1)
        assert m.remove_if_equal("a", 2) is False
        assert "a" in m
        assert m.remove_if_equal("a", 1) is True
        assert "a" not in m
        assert m.remove_if_equal("missing", 1) is False

    def test_clear_does_not_materialize(self) -> None:
        calls = []
        m = LazyMap()
        for key in "abc":
            m.put(key, _tracked(calls, key))
        m.clear()
        assert calls == []
        assert len(m) == 0

    def test_reset_cache_recomputes(self, counter) -> None:
        m = LazyMap()
        m.put("a", counter)
        assert m["a"] == 0
        m.reset()
        assert m["a"] == 1


class TestLRULazyMap:
    """Tests for the working-set bound of LRULazyMap."""

    def _alphabet_map(self, working_set_size):
        m = LRULazyMap(working_set_size)
        for letter in string.ascii_uppercase:
            m.put(letter, lambda letter=letter: letter.lower())
        return m

    def test_reading_past_working_set_resets_eldest(self) -> None:
        m = self._alphabet_map(5)
        for letter in "ABCDE":
            m[letter]
        assert m.get_slot("A").has_run()

        assert m["F"] == "f"
        assert not m.get_slot("A").has_run()
        assert all(m.get_slot(letter).has_run() for letter in "BCDEF")

    def test_removed_slot_keeps_its_value(self) -> None:
        m = self._alphabet_map(5)
        for letter in "ABCDE":
            m[letter]
        removed = m.remove_slot("A")
        m["F"]
        m["G"]
        assert removed.has_run()
        assert sorted(m.materialized_keys()) == ["C", "D", "E", "F", "G"]

    def test_working_set_bound_after_full_scan(self) -> None:
        m = self._alphabet_map(5)
        assert "".join(m.values()) == string.ascii_lowercase
        assert sorted(m.materialized_keys()) == list("VWXYZ")
        assert len(m.working_set()) == 5

    def test_replaced_slot_leaves_working_set(self, counter) -> None:
        m = LRULazyMap(working_set_size=2)
        m.put("a", counter)
        m["a"]
        m.put("a", counter)
        assert m.working_set() == []

    def test_invalid_working_set_size(self) -> None:
        with pytest.raises(ConfigurationError):
            LRULazyMap(working_set_size=-3)
