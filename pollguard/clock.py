"""
Clock abstraction for expiry calculations.

All expiry math in PollGuard is done in integer milliseconds relative to
"now". Components take a Clock so boundary conditions can be tested
deterministically.
"""

import time
from typing import Protocol


class Clock(Protocol):
    """Source of wall-clock time in milliseconds."""

    def now_ms(self) -> int: ...


class SystemClock:
    """Clock backed by the system wall clock."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests and by tooling that replays recorded traffic.
    """

    def __init__(self, start_ms: int = 0):
        self._now = start_ms

    def now_ms(self) -> int:
        return self._now

    def set(self, now_ms: int) -> None:
        """Jump to an absolute timestamp."""
        self._now = now_ms

    def advance(self, ms: int) -> int:
        """Move forward by `ms` milliseconds and return the new time."""
        self._now += ms
        return self._now


SYSTEM_CLOCK = SystemClock()
