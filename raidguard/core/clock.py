"""
RaidGuard - Clock
=================

Injectable time source for the detection engine.

DESIGN:
    Every window prune, decay tick and detection timestamp reads time from
    a Clock instead of calling time.time() directly, so tests can step time
    forward deterministically with ManualClock.
"""

import time
from typing import Protocol


class Clock(Protocol):
    """Anything that reports the current time in epoch milliseconds."""

    def now_ms(self) -> int:
        ...


class SystemClock:
    """Wall-clock time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms

    def now_ms(self) -> int:
        return self._now

    def set(self, ms: int) -> None:
        self._now = ms

    def advance(self, ms: int) -> int:
        """Move forward by ms and return the new time."""
        self._now += ms
        return self._now


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
]
