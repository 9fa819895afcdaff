"""The single capability shared by everything an InvalidationGroup can hold."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Resettable(Protocol):
    """Something holding a cached computation that can be discarded.

    After ``reset()`` the next read recomputes instead of returning the
    cached result. Implementations must tolerate ``reset()`` racing with a
    concurrent read or write on the same object, and resets of independent
    members must commute.
    """

    def reset(self) -> None:
        ...
