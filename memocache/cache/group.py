"""Invalidation groups: bulk reset of a tree of resettable caches.

A group holds any object with a ``reset()`` method (memoized values,
bounded caches, lazy collections and other groups) and resets all of them on
demand. Groups never reset on their own.

Usage:
    group = InvalidationGroup()
    schema = group.add(MemoizedValue.of(load_schema))
    lookup = group.add(create_lru_cache(128))

    group.reset_all()   # schema recomputes, lookup is emptied
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import TypeVar

from memocache import metrics
from memocache.cache.resettable import Resettable
from memocache.errors import ConfigurationError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Resettable)


class InvalidationGroup:
    """Insertion-ordered, identity-keyed set of resettable members."""

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        # id(member) -> member; holding the member keeps its id stable
        self._members: dict[int, Resettable] = {}
        self._lock = threading.Lock()

    def add(self, member: R) -> R:
        """Add ``member`` and return it, so adds can be chained into assignments.

        Adding a member that is already present is a no-op.

        Raises:
            TypeError: if member is None or has no reset() method
            ConfigurationError: if member is a group that contains this group
        """
        if member is None:
            raise TypeError("member can not be None")
        if not isinstance(member, Resettable):
            raise TypeError(f"{type(member).__name__} has no reset() method")
        if member is self or (
            isinstance(member, InvalidationGroup) and member.contains(self, recursive=True)
        ):
            raise ConfigurationError(
                "invalidation group can not contain itself",
                context={"group": self.name or hex(id(self))},
            )
        with self._lock:
            self._members.setdefault(id(member), member)
        return member

    def remove(self, member: Resettable) -> bool:
        """Stop resetting ``member``; returns False if it was not a member."""
        with self._lock:
            current = self._members.get(id(member))
            if current is not member:
                return False
            del self._members[id(member)]
            return True

    def contains(self, member: object, recursive: bool = False) -> bool:
        with self._lock:
            members = list(self._members.values())
        for candidate in members:
            if candidate is member:
                return True
            if recursive and isinstance(candidate, InvalidationGroup):
                if candidate.contains(member, recursive=True):
                    return True
        return False

    def __contains__(self, member: object) -> bool:
        return self.contains(member)

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Resettable]:
        with self._lock:
            return iter(list(self._members.values()))

    def reset_all(self) -> None:
        """Reset every current member, recursing through nested groups.

        Members are reset in insertion order from a snapshot taken without
        holding any lock while resetting, so members may be added or
        removed concurrently.
        """
        with self._lock:
            members = list(self._members.values())
        for member in members:
            member.reset()
        metrics.record_group_reset()
        logger.debug(
            f"[InvalidationGroup] {self.name or hex(id(self))} reset {len(members)} members"
        )

    reset = reset_all

    def clear(self) -> None:
        """Remove all members without resetting them."""
        with self._lock:
            self._members.clear()

    def __repr__(self) -> str:
        return f"InvalidationGroup(name={self.name!r}, members={len(self)})"
