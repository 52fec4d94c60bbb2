"""
Time sources for the classification engine.

Every timeout in the engine (staleness, stuck phase) is evaluated against a
Clock passed in at construction, never against datetime.now() directly.
"""

import datetime
import threading
from typing import Optional, Union


class Clock:
    """Supplies the current time."""

    def now(self) -> datetime.datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now()


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by tests and by offline replays where wall time is meaningless.
    """

    def __init__(self, start: Optional[datetime.datetime] = None):
        self._now = start or datetime.datetime(2024, 1, 1, 12, 0, 0)
        self._lock = threading.Lock()

    def now(self) -> datetime.datetime:
        with self._lock:
            return self._now

    def advance(self, delta: Union[float, datetime.timedelta]) -> datetime.datetime:
        """Move the clock forward by seconds or a timedelta and return the new time."""
        if not isinstance(delta, datetime.timedelta):
            delta = datetime.timedelta(seconds=delta)
        if delta < datetime.timedelta(0):
            raise ValueError(f"ManualClock cannot go backwards (delta={delta})")
        with self._lock:
            self._now = self._now + delta
            return self._now
