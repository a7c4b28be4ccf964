"""
Sliding Window Store
====================

Keyed, time-bounded event buffers, one per (detector type, scope, actor).

DESIGN:
    Each key owns a list of WindowEntry kept sorted by timestamp, so a
    late-arriving event lands in the right place and pruning is a single
    bisect plus slice from the left. Reads prune first: a caller never
    sees an entry with `now - timestamp > window`.

    Locks are per key. Two actors never wait on each other; the same
    actor's append-then-read is serialized through `update()`.

    Keys remember the window they were last read with. The periodic
    sweep uses it to drop entries and then whole keys once that window
    has fully elapsed with no new writes.
"""

import asyncio
from bisect import bisect_left, insort
from collections import defaultdict
from typing import Dict, List, Optional

from raidguard.core.clock import Clock, SystemClock

from .models import WindowEntry, WindowKey


def _entry_time(entry: WindowEntry) -> int:
    return entry.timestamp


class SlidingWindowStore:
    """Concurrency-safe keyed store of sliding windows."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()
        self._buffers: Dict[WindowKey, List[WindowEntry]] = defaultdict(list)
        self._windows: Dict[WindowKey, int] = {}
        self._locks: Dict[WindowKey, asyncio.Lock] = {}

    # =========================================================================
    # Locking
    # =========================================================================

    def lock(self, key: WindowKey) -> asyncio.Lock:
        """The lock owning a single key."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    # =========================================================================
    # Core Operations
    # =========================================================================

    def append(self, key: WindowKey, entry: WindowEntry) -> None:
        """Insert an entry in timestamp order."""
        insort(self._buffers[key], entry, key=_entry_time)

    def recent(
        self,
        key: WindowKey,
        window_ms: int,
        now_ms: Optional[int] = None,
    ) -> List[WindowEntry]:
        """
        Entries with `now - timestamp <= window_ms`, oldest first.

        Older entries are removed from the buffer as a side effect.
        """
        now = self._clock.now_ms() if now_ms is None else now_ms
        self._windows[key] = window_ms

        buffer = self._buffers.get(key)
        if not buffer:
            return []

        cutoff = bisect_left(buffer, now - window_ms, key=_entry_time)
        if cutoff:
            del buffer[:cutoff]
        return list(buffer)

    async def update(
        self,
        key: WindowKey,
        entries: List[WindowEntry],
        window_ms: int,
        now_ms: Optional[int] = None,
    ) -> List[WindowEntry]:
        """Append entries and read the pruned window as one step under the key's lock."""
        async with self.lock(key):
            for entry in entries:
                self.append(key, entry)
            return self.recent(key, window_ms, now_ms)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def sweep(self, now_ms: Optional[int] = None) -> int:
        """
        Prune every idle key against its last known window.

        Keys whose lock is currently held are skipped and picked up on
        the next sweep.

        Returns:
            Number of keys removed.
        """
        now = self._clock.now_ms() if now_ms is None else now_ms
        removed = 0

        for key in list(self._buffers.keys()):
            lock = self._locks.get(key)
            if lock is not None and lock.locked():
                continue
            window_ms = self._windows.get(key)
            if window_ms is not None:
                self.recent(key, window_ms, now)
            if not self._buffers.get(key):
                self._buffers.pop(key, None)
                self._windows.pop(key, None)
                self._locks.pop(key, None)
                removed += 1

        return removed

    def discard(self, key: WindowKey) -> None:
        """Forget a key entirely."""
        self._buffers.pop(key, None)
        self._windows.pop(key, None)
        self._locks.pop(key, None)

    def size(self, key: WindowKey) -> int:
        """Raw entry count, without pruning."""
        return len(self._buffers.get(key, ()))

    def __contains__(self, key: object) -> bool:
        return key in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)


__all__ = [
    "SlidingWindowStore",
]
