"""
RaidGuard - Raid Analyzer Tests
===============================

Tests for join-burst scoring and burst suppression.
"""

import pytest

from raidguard.core.constants import MS_PER_DAY
from raidguard.services.detection.models import Event, EventKind, JoinRecord
from raidguard.services.detection.raid import (
    RaidClusterAnalyzer,
    raid_suspicion,
    similar_username_count,
)


GUILD = 500
WINDOW_MS = 300_000


def _join(clock, actor_id, username="member", age_ms=None, has_avatar=None, scope_id=GUILD):
    return Event(
        kind=EventKind.JOIN,
        scope_id=scope_id,
        actor_id=actor_id,
        timestamp=clock.now_ms(),
        account_age_ms=age_ms,
        has_avatar=has_avatar,
        username=username,
    )


def _record(username="member", age_ms=None, has_avatar=None):
    return JoinRecord(actor_id=1, username=username, timestamp=0, account_age_ms=age_ms, has_avatar=has_avatar)


# =============================================================================
# Scoring
# =============================================================================

class TestRaidSuspicion:
    """Test the three-factor raid score."""

    def test_similar_usernames_strip_digits(self):
        """Test similar usernames strip digits."""
        assert similar_username_count(["raider1", "raider22", "raider333", "alice"]) == 3

    def test_short_stems_ignored(self):
        """Test short stems ignored."""
        assert similar_username_count(["bob1", "bob2"]) == 0

    def test_empty_joins(self):
        """Test empty joins."""
        score, _ = raid_suspicion([])
        assert score == 0

    def test_unknown_fields_least_suspicious(self):
        """Test unknown fields least suspicious."""
        score, factors = raid_suspicion([_record(f"user{i}x") for i in range(3)] + [_record("solo")])
        assert factors["newAccountRatio"] == 0
        assert factors["noAvatarRatio"] == 0

    def test_full_raid_profile(self):
        """Test full raid profile."""
        joins = [_record(f"raider{i}", age_ms=MS_PER_DAY, has_avatar=False) for i in range(10)]
        score, factors = raid_suspicion(joins)
        assert factors == {"newAccountRatio": 1.0, "noAvatarRatio": 1.0, "similarUsernameRatio": 1.0}
        assert score == pytest.approx(1.0)

    def test_new_accounts_without_avatars(self):
        """Test new accounts without avatars."""
        joins = [
            _record(f"name{chr(97 + i)}{chr(97 + i)}", age_ms=MS_PER_DAY, has_avatar=False)
            for i in range(12)
        ]
        score, factors = raid_suspicion(joins)
        assert factors["similarUsernameRatio"] == 0
        assert score >= 0.7


# =============================================================================
# Analyzer
# =============================================================================

class TestRaidClusterAnalyzer:
    """Test windowed burst detection."""

    @pytest.fixture
    def analyzer(self, clock):
        return RaidClusterAnalyzer(clock)

    @pytest.mark.asyncio
    async def test_below_threshold_no_assessment(self, analyzer, clock):
        """Test below threshold no assessment."""
        for i in range(9):
            assert await analyzer.record_join(_join(clock, i), 10, WINDOW_MS) is None

    @pytest.mark.asyncio
    async def test_threshold_triggers_once_per_burst(self, analyzer, clock):
        """Test threshold triggers once per burst."""
        results = []
        for i in range(15):
            results.append(await analyzer.record_join(
                _join(clock, i, f"raider{i}", MS_PER_DAY, False), 10, WINDOW_MS,
            ))
            clock.advance(1000)

        triggered = [r for r in results if r is not None]
        assert len(triggered) == 1
        assert triggered[0].join_count == 10
        assert triggered[0].score >= 0.7
        assert analyzer.is_burst_active(GUILD)

    @pytest.mark.asyncio
    async def test_new_burst_after_window_drains(self, analyzer, clock):
        """Test new burst after window drains."""
        for i in range(10):
            await analyzer.record_join(_join(clock, i), 10, WINDOW_MS)
        clock.advance(WINDOW_MS + 1)

        # First join of the next burst closes the old one
        assert await analyzer.record_join(_join(clock, 100), 10, WINDOW_MS) is None
        assert not analyzer.is_burst_active(GUILD)

        results = [await analyzer.record_join(_join(clock, 101 + i), 10, WINDOW_MS) for i in range(9)]
        assert results[-1] is not None

    @pytest.mark.asyncio
    async def test_guilds_are_independent(self, analyzer, clock):
        """Test guilds are independent."""
        for i in range(9):
            await analyzer.record_join(_join(clock, i, scope_id=1), 10, WINDOW_MS)
        assert await analyzer.record_join(_join(clock, 99, scope_id=2), 10, WINDOW_MS) is None
        assert len(analyzer.recent_joins(1, WINDOW_MS)) == 9

    @pytest.mark.asyncio
    async def test_prune_closes_expired_bursts(self, analyzer, clock):
        """Test prune closes expired bursts."""
        for i in range(10):
            await analyzer.record_join(_join(clock, i), 10, WINDOW_MS)
        assert analyzer.is_burst_active(GUILD)

        clock.advance(WINDOW_MS + 1)
        removed = await analyzer.prune(10)
        assert removed == 1
        assert not analyzer.is_burst_active(GUILD)
