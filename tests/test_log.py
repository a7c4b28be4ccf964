"""
RaidGuard - Detection Log Tests
===============================

Tests for the bounded detection log, statistics and the JSON sink.
"""

import asyncio
import json

import pytest

from raidguard.core.constants import MS_PER_DAY
from raidguard.services.detection.log import DetectionLog, JsonDetectionSink, persist
from raidguard.services.detection.models import Detection, DetectionKind
from raidguard.services.detection.settings import JsonSettingsStore, file_lock, sanitize_settings


def _spam(i, ts, scope_id=1, score=1.0, threats=("rapid_messages",)):
    return Detection(
        id=f"spam-{i}",
        kind=DetectionKind.SPAM,
        scope_id=scope_id,
        timestamp=ts,
        composite_score=score,
        threat_kinds=frozenset(threats),
        actor_id=42,
        channel_id=7,
        message_id=1000 + i,
    )


def _raid(i, ts, scope_id=1):
    return Detection(
        id=f"raid-{i}",
        kind=DetectionKind.RAID,
        scope_id=scope_id,
        timestamp=ts,
        composite_score=0.8,
        threat_kinds=frozenset({"mass_join"}),
        details={"joinCount": 10, "timeWindow": 300_000, "joins": [{"userId": 5}]},
    )


# =============================================================================
# Bounded Buffers
# =============================================================================

class TestDetectionLog:
    """Test capacity and queries."""

    @pytest.fixture
    def log(self, clock):
        return DetectionLog(clock)

    def test_spam_capacity_evicts_oldest(self, log, clock):
        """Test spam capacity evicts oldest."""
        for i in range(501):
            log.append(_spam(i, clock.now_ms() + i))
        assert log.size(DetectionKind.SPAM) == 500
        ids = {d.id for d in log.query(kind=DetectionKind.SPAM, limit=1000)}
        assert "spam-0" not in ids
        assert "spam-500" in ids

    def test_raid_capacity(self, log, clock):
        """Test raid capacity."""
        for i in range(101):
            log.append(_raid(i, clock.now_ms() + i))
        assert log.size(DetectionKind.RAID) == 100

    def test_query_newest_first(self, log, clock):
        """Test query newest first."""
        now = clock.now_ms()
        log.append(_spam(1, now - 100))
        log.append(_raid(2, now))
        log.append(_spam(3, now - 50))
        assert [d.id for d in log.query()] == ["raid-2", "spam-3", "spam-1"]

    def test_query_filters(self, log, clock):
        """Test query filters."""
        now = clock.now_ms()
        log.append(_spam(1, now, scope_id=1))
        log.append(_spam(2, now, scope_id=2))
        log.append(_spam(3, now - 10_000, scope_id=1, threats=("link_spam",)))
        assert [d.id for d in log.query(scope_id=2)] == ["spam-2"]
        assert {d.id for d in log.query(since_ms=now - 1)} == {"spam-1", "spam-2"}
        assert [d.id for d in log.query(threat_kind="link_spam")] == ["spam-3"]

    def test_query_limit(self, log, clock):
        """Test query limit."""
        for i in range(10):
            log.append(_spam(i, clock.now_ms() + i))
        assert len(log.query(limit=3)) == 3


# =============================================================================
# Statistics
# =============================================================================

class TestStatistics:
    """Test aggregate counts."""

    def test_statistics_shape_and_values(self, clock):
        """Test statistics shape and values."""
        log = DetectionLog(clock)
        now = clock.now_ms()
        log.append(_spam(1, now, score=1.0, threats=("rapid_messages",)))
        log.append(_spam(2, now, score=2.0, threats=("rapid_messages", "link_spam")))
        log.append(_raid(3, now))

        stats = log.statistics(days=7)
        assert stats["total"] == 3
        assert stats["spam"] == 2
        assert stats["raids"] == 1
        assert stats["avgSpamScore"] == pytest.approx(1.5)
        assert stats["topThreats"][0] == {"threat": "rapid_messages", "count": 2}
        assert len(stats["topThreats"]) <= 5

    def test_statistics_respects_day_window(self, clock):
        """Test statistics respects day window."""
        log = DetectionLog(clock)
        log.append(_spam(1, clock.now_ms() - 8 * MS_PER_DAY))
        log.append(_spam(2, clock.now_ms()))
        assert log.statistics(days=7)["total"] == 1
        assert log.statistics(days=30)["total"] == 2

    def test_empty_statistics(self, clock):
        """Test empty statistics."""
        stats = DetectionLog(clock).statistics()
        assert stats == {"total": 0, "spam": 0, "raids": 0, "avgSpamScore": 0, "topThreats": []}


# =============================================================================
# JSON Sink
# =============================================================================

class TestJsonDetectionSink:
    """Test the file mirror."""

    @pytest.mark.asyncio
    async def test_writes_newest_first(self, tmp_path, clock):
        """Test writes newest first."""
        path = tmp_path / "detection.json"
        sink = JsonDetectionSink(path)
        await sink.write(_spam(1, clock.now_ms()))
        await sink.write(_spam(2, clock.now_ms()))
        await sink.write(_raid(3, clock.now_ms()))

        data = json.loads(path.read_text())
        assert [d["id"] for d in data["spamPatterns"]] == ["spam-2", "spam-1"]
        assert data["detectedRaids"][0]["joinCount"] == 10

    @pytest.mark.asyncio
    async def test_preserves_settings_key(self, tmp_path, clock):
        """Test preserves settings key."""
        path = tmp_path / "detection.json"
        path.write_text(json.dumps({"settings": {"enabled": False}}))
        await JsonDetectionSink(path).write(_spam(1, clock.now_ms()))
        assert json.loads(path.read_text())["settings"] == {"enabled": False}

    @pytest.mark.asyncio
    async def test_concurrent_writes_all_land(self, tmp_path, clock):
        """Test concurrent writes all land."""
        path = tmp_path / "detection.json"
        sink = JsonDetectionSink(path)
        await asyncio.gather(*[sink.write(_spam(i, clock.now_ms())) for i in range(20)])
        assert len(json.loads(path.read_text())["spamPatterns"]) == 20

    @pytest.mark.asyncio
    async def test_waits_for_file_lock(self, tmp_path, clock):
        """Test the sink does not touch a file while another writer holds its lock."""
        path = tmp_path / "detection.json"
        lock = file_lock(path)
        lock.acquire()
        try:
            task = asyncio.create_task(JsonDetectionSink(path).write(_spam(1, clock.now_ms())))
            await asyncio.sleep(0.05)
            assert not path.exists()
            assert not task.done()
        finally:
            lock.release()

        await task
        assert len(json.loads(path.read_text())["spamPatterns"]) == 1

    @pytest.mark.asyncio
    async def test_shares_file_with_settings_store(self, tmp_path, clock):
        """Test interleaved detection writes and settings saves keep both keys."""
        path = tmp_path / "detection.json"
        sink = JsonDetectionSink(path)
        store = JsonSettingsStore(path)

        await asyncio.gather(
            *[sink.write(_spam(i, clock.now_ms())) for i in range(20)],
            *[
                asyncio.to_thread(store.save, sanitize_settings({"thresholds": {"rapidMessages": 6 + i}}))
                for i in range(5)
            ],
        )

        data = json.loads(path.read_text())
        assert len(data["spamPatterns"]) == 20
        assert data["settings"]["thresholds"]["rapidMessages"] in range(6, 11)

    def test_file_lock_shared_per_path(self, tmp_path):
        """Test string and Path forms of one file map to the same lock."""
        path = tmp_path / "detection.json"
        assert file_lock(str(path)) is file_lock(path)
        assert file_lock(tmp_path / "other.json") is not file_lock(path)

    @pytest.mark.asyncio
    async def test_persist_reports_failure(self, clock):
        """Test persist reports failure."""
        class BrokenSink:
            async def write(self, detection):
                raise OSError("disk full")

        assert await persist(BrokenSink(), _spam(1, clock.now_ms())) is False
