"""Monotonic identifiers for jobs and diagnosis records."""

import time
from typing import Callable, Optional


class MonotonicIdGenerator:
    """Issue strictly increasing integer ids derived from the wall clock.

    Ids are millisecond timestamps; when two ids are requested within the
    same millisecond (or the clock steps back) the previous id plus one is
    used instead.
    """

    def __init__(self, floor: int = 0, clock: Optional[Callable[[], float]] = None) -> None:
        self._last = int(floor)
        self._clock = clock or time.time

    @property
    def last(self) -> int:
        return self._last

    def observe(self, existing_id: Optional[int]) -> None:
        """Raise the floor so future ids stay above an already-issued id."""
        if existing_id is not None and existing_id > self._last:
            self._last = int(existing_id)

    def next_id(self) -> int:
        candidate = int(self._clock() * 1000)
        self._last = candidate if candidate > self._last else self._last + 1
        return self._last
