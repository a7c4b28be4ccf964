"""
Suspicion Tracker
=================

Per-actor decaying suspicion, scoped per guild.

DESIGN:
    Values live in a guild -> actor map. Every evaluated message adds its
    composite score (capped at 1). A single periodic tick subtracts a
    fixed step from every tracked actor and drops anyone at or below 0,
    so decay speed does not depend on how often events arrive.

    Updates and the tick are synchronous dict operations run on the event
    loop, so each actor's read-modify-write completes without
    interleaving.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from raidguard.core.clock import Clock, SystemClock
from raidguard.core.constants import DECAY_STEP, SUSPICION_MAX
from raidguard.core.logger import logger

from .models import SuspicionScore


class SuspicionTracker:
    """Tracks suspicion values and decays them on a fixed tick."""

    def __init__(self, clock: Optional[Clock] = None, decay_step: float = DECAY_STEP) -> None:
        self._clock = clock or SystemClock()
        self.decay_step = decay_step
        self._scores: Dict[int, Dict[int, SuspicionScore]] = defaultdict(dict)

    def get(self, scope_id: int, actor_id: int) -> float:
        """Current value, 0 for untracked actors."""
        entry = self._scores.get(scope_id, {}).get(actor_id)
        return entry.value if entry else 0.0

    def get_entry(self, scope_id: int, actor_id: int) -> Optional[SuspicionScore]:
        return self._scores.get(scope_id, {}).get(actor_id)

    def update(self, scope_id: int, actor_id: int, contribution: float) -> float:
        """
        Add a composite score to an actor's value and return the new value.

        Actors are only created by a positive contribution.
        """
        now = self._clock.now_ms()
        entry = self._scores.get(scope_id, {}).get(actor_id)

        if entry is None:
            if contribution <= 0:
                return 0.0
            entry = SuspicionScore(scope_id=scope_id, actor_id=actor_id, value=0.0, last_updated=now)
            self._scores[scope_id][actor_id] = entry

        entry.value = min(entry.value + max(contribution, 0.0), SUSPICION_MAX)
        entry.last_updated = now
        return entry.value

    async def decay_tick(self) -> int:
        """
        Subtract one decay step from every actor.

        Returns:
            Number of actors removed because they reached 0.
        """
        now = self._clock.now_ms()
        removed = 0

        for scope_id in list(self._scores.keys()):
            actors = self._scores[scope_id]
            for actor_id in list(actors.keys()):
                entry = actors[actor_id]
                # Rounded so repeated 0.1 steps land exactly on 0
                entry.value = round(entry.value - self.decay_step, 9)
                entry.last_updated = now
                if entry.value <= 0:
                    del actors[actor_id]
                    removed += 1
            if not actors:
                del self._scores[scope_id]

        if removed:
            logger.debug("Suspicion Decayed", [
                ("Removed", str(removed)),
                ("Tracked", str(len(self))),
            ])
        return removed

    def top(self, scope_id: int, limit: int = 10) -> List[SuspicionScore]:
        """Most suspicious actors in a scope, highest first."""
        entries = list(self._scores.get(scope_id, {}).values())
        entries.sort(key=lambda e: e.value, reverse=True)
        return entries[:limit]

    def __len__(self) -> int:
        return sum(len(actors) for actors in self._scores.values())


__all__ = [
    "SuspicionTracker",
]
