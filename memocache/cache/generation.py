"""Process-wide generation clock for lazy, sweep-free invalidation.

Every MemoizedValue stamps the clock's current generation when it
materializes. Advancing the clock makes every older stamp stale, so all
non-pinned values recompute on their next ``get()`` without anyone walking
them. Values hold a reference to the clock they were created with; the
module-level default clock is shared unless another one is injected.
"""

from __future__ import annotations

import itertools
import logging
import threading

from memocache import metrics

logger = logging.getLogger(__name__)


class GenerationClock:
    """Monotonically increasing generation counter."""

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._counter = itertools.count(1)
        self._current = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        """The current generation; a plain read, never blocks."""
        return self._current

    def advance(self) -> int:
        """Advance to a new generation and return it.

        Fire-and-forget: a computation already in flight keeps the stamp it
        captured before it started and is not interrupted.
        """
        with self._lock:
            self._current = next(self._counter)
            generation = self._current
        metrics.record_generation_bump()
        logger.debug(f"[GenerationClock] {self.name!r} advanced to {generation}")
        return generation

    def is_current(self, stamp: int) -> bool:
        return stamp == self._current

    def __repr__(self) -> str:
        return f"GenerationClock(name={self.name!r}, current={self._current})"


_default_clock = GenerationClock()


def get_default_clock() -> GenerationClock:
    """Return the process-wide clock shared by values created without one."""
    return _default_clock


def invalidate_all() -> int:
    """Advance the default clock, invalidating every non-pinned value."""
    return _default_clock.advance()
