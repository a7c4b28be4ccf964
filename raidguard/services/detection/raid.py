"""
Raid Cluster Analyzer
=====================

Evaluates bursts of member joins for coordinated-raid likelihood.

DESIGN:
    Joins go into a per-guild sliding window. Once the window holds at
    least the mass-join threshold, the burst is scored on three signals:
    share of new accounts, share of joiners without an avatar, and share
    of joiners whose digit-stripped username collides with another's.

    One detection per contiguous burst: after a guild triggers, further
    joins are suppressed until its window count drops back below the
    threshold.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from raidguard.core.clock import Clock, SystemClock
from raidguard.core.logger import logger

from .constants import (
    DIGITS_PATTERN,
    NEW_ACCOUNT_AGE_MS,
    NEW_ACCOUNT_WEIGHT,
    NO_AVATAR_WEIGHT,
    SIMILAR_NAME_MIN_LENGTH,
    SIMILAR_NAME_WEIGHT,
)
from .models import DetectorType, Event, JoinRecord, WindowEntry, WindowKey
from .windows import SlidingWindowStore


# =============================================================================
# Scoring
# =============================================================================

@dataclass(frozen=True)
class RaidAssessment:
    """A burst that crossed the mass-join threshold, with its score."""
    scope_id: int
    join_count: int
    window_ms: int
    joins: Tuple[JoinRecord, ...]
    score: float
    factors: Dict[str, float] = field(default_factory=dict)


def similar_username_count(usernames: Sequence[str]) -> int:
    """
    Joiners whose username, lowercased and stripped of digits, collides
    with at least one other joiner's. Stripped names of 3 characters or
    fewer are ignored.
    """
    stems = Counter()
    for name in usernames:
        stem = DIGITS_PATTERN.sub("", (name or "").lower())
        if len(stem) >= SIMILAR_NAME_MIN_LENGTH:
            stems[stem] += 1
    return sum(count for count in stems.values() if count > 1)


def raid_suspicion(joins: Sequence[JoinRecord]) -> Tuple[float, Dict[str, float]]:
    """
    Weighted raid score in [0, 1] and the three ratios behind it.

    Unknown account age counts as an established account and an unknown
    avatar flag counts as having one.
    """
    total = len(joins)
    if total == 0:
        return 0.0, {"newAccountRatio": 0.0, "noAvatarRatio": 0.0, "similarUsernameRatio": 0.0}

    new_accounts = sum(
        1 for j in joins
        if j.account_age_ms is not None and j.account_age_ms < NEW_ACCOUNT_AGE_MS
    )
    no_avatar = sum(1 for j in joins if j.has_avatar is False)
    similar = similar_username_count([j.username for j in joins])

    factors = {
        "newAccountRatio": new_accounts / total,
        "noAvatarRatio": no_avatar / total,
        "similarUsernameRatio": similar / total,
    }
    score = (
        NEW_ACCOUNT_WEIGHT * factors["newAccountRatio"]
        + NO_AVATAR_WEIGHT * factors["noAvatarRatio"]
        + SIMILAR_NAME_WEIGHT * factors["similarUsernameRatio"]
    )
    return min(score, 1.0), factors


# =============================================================================
# Analyzer
# =============================================================================

class RaidClusterAnalyzer:
    """Per-guild join windows with burst suppression."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()
        self._store = SlidingWindowStore(self._clock)
        self._active_bursts: Set[int] = set()

    @staticmethod
    def _key(scope_id: int) -> WindowKey:
        return WindowKey(DetectorType.MASS_JOIN, scope_id, None)

    async def record_join(
        self,
        event: Event,
        threshold: int,
        window_ms: int,
    ) -> Optional[RaidAssessment]:
        """
        Add a join to its guild's window.

        Returns:
            A RaidAssessment the first time a burst reaches the threshold,
            otherwise None.
        """
        scope_id = event.scope_id
        key = self._key(scope_id)
        record = JoinRecord(
            actor_id=event.actor_id,
            username=event.username or "",
            timestamp=event.timestamp,
            account_age_ms=event.account_age_ms,
            has_avatar=event.has_avatar,
        )

        async with self._store.lock(key):
            self._store.append(key, WindowEntry(event.timestamp, record))
            entries = self._store.recent(key, window_ms)

            if len(entries) < threshold:
                self._active_bursts.discard(scope_id)
                return None
            if scope_id in self._active_bursts:
                return None
            self._active_bursts.add(scope_id)

        joins = tuple(entry.payload for entry in entries)
        score, factors = raid_suspicion(joins)
        return RaidAssessment(
            scope_id=scope_id,
            join_count=len(joins),
            window_ms=window_ms,
            joins=joins,
            score=score,
            factors=factors,
        )

    def recent_joins(self, scope_id: int, window_ms: int) -> List[JoinRecord]:
        return [entry.payload for entry in self._store.recent(self._key(scope_id), window_ms)]

    def is_burst_active(self, scope_id: int) -> bool:
        return scope_id in self._active_bursts

    async def prune(self, threshold: int) -> int:
        """
        Drop expired joins and close bursts that fell below the threshold.

        Returns:
            Number of guild windows removed.
        """
        removed = self._store.sweep()

        for scope_id in list(self._active_bursts):
            if self._store.size(self._key(scope_id)) < threshold:
                self._active_bursts.discard(scope_id)

        if removed:
            logger.debug("Raid Windows Pruned", [
                ("Removed", str(removed)),
                ("Active Bursts", str(len(self._active_bursts))),
            ])
        return removed


__all__ = [
    "RaidAssessment",
    "similar_username_count",
    "raid_suspicion",
    "RaidClusterAnalyzer",
]
