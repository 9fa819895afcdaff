"""Re-iterable sequences whose elements are generated lazily from inputs."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

from memocache.cache.lazy_collections import LazyList, LRULazyList

S = TypeVar("S")
R = TypeVar("R")


class GeneratedIterableBuilder(Generic[S, R]):
    """Collects inputs; each becomes a lazy ``generator(input)`` element.

    ``build()`` is a finishing step: call it once, after every input has been
    added. The result can be iterated any number of times.
    """

    def __init__(self, generator: Callable[[S], R], backing: LazyList[R]) -> None:
        if not callable(generator):
            raise TypeError("generator must be callable")
        self._generator = generator
        self._backing = backing

    def add(self, item: S) -> GeneratedIterableBuilder[S, R]:
        generator = self._generator
        self._backing.add(lambda: generator(item))
        return self

    def add_all(self, items: Iterable[S]) -> GeneratedIterableBuilder[S, R]:
        for item in items:
            self.add(item)
        return self

    def build(self) -> LazyList[R]:
        return self._backing

    def build_as_iterator(self) -> Iterator[R]:
        """Single-pass iterator over the generated elements."""
        return iter(self._backing)


def builder_using_generator(
    generator: Callable[[S], R],
    initial_size: int | None = None,
    working_set_size: int | None = None,
) -> GeneratedIterableBuilder[S, R]:
    """Start a builder of lazily generated elements.

    Args:
        generator: Function applied to each added input on first access
        initial_size: Expected number of inputs (sizing hint)
        working_set_size: If set, keep at most this many generated
            elements materialized (an LRULazyList backs the result)
    """
    if working_set_size is not None:
        backing: LazyList[R] = LRULazyList(working_set_size, initial_size)
    else:
        backing = LazyList(initial_size)
    return GeneratedIterableBuilder(generator, backing)
