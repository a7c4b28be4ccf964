"""
RaidGuard - Detection Engine Tests
==================================

End-to-end tests for ingestion, emission, actions and background ticks.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from raidguard.core.constants import MS_PER_DAY
from raidguard.services.detection.engine import DetectionEngine
from raidguard.services.detection.models import DetectionKind, DetectorType, Event, WindowKey
from raidguard.utils.metrics import (
    ACTIONS_FAILED,
    ALERTS_FAILED,
    INGESTION_EXEMPT,
    INGESTION_MALFORMED,
    MetricsCollector,
)


GUILD_ID = 111111111111111111
USER_ID = 222222222222222222


def _results_by_type(detection):
    return {r["type"]: r for r in detection.details["results"]}


# =============================================================================
# Spam Scenarios
# =============================================================================

class TestSpamDetection:
    """Test message evaluation end to end."""

    @pytest.mark.asyncio
    async def test_rapid_messages_emit_on_threshold(self, engine, make_message):
        """Test rapid messages emit on threshold."""
        emitted = []
        for i in range(5):
            emitted.append(await engine.ingest(make_message(f"message {i}")))

        assert all(result == [] for result in emitted[:4])
        detection = emitted[4][0]
        assert detection.kind is DetectionKind.SPAM
        assert "rapid_messages" in detection.threat_kinds
        assert detection.composite_score == pytest.approx(1.0)
        assert engine.log.size(DetectionKind.SPAM) == 1

    @pytest.mark.asyncio
    async def test_identical_content_reports_repeats(self, engine, make_message):
        """Test identical content reports repeats."""
        results = []
        for _ in range(3):
            results = await engine.ingest(make_message("buy now"))

        assert len(results) == 1
        identical = _results_by_type(results[0])["identical_content"]
        assert identical["threat"] is True
        assert identical["details"]["maxRepeats"] == 3

    @pytest.mark.asyncio
    async def test_messages_outside_window_do_not_accumulate(self, engine, make_message, clock):
        """Test messages outside window do not accumulate."""
        for i in range(4):
            await engine.ingest(make_message(f"m{i}"))
        clock.advance(30_001)
        assert await engine.ingest(make_message("late")) == []

    @pytest.mark.asyncio
    async def test_actors_tracked_separately(self, engine, make_message):
        """Test actors tracked separately."""
        for i in range(4):
            await engine.ingest(make_message(f"a{i}", actor_id=1))
            await engine.ingest(make_message(f"b{i}", actor_id=2))
        assert engine.log.size() == 0

    @pytest.mark.asyncio
    async def test_mass_mention_emits_immediately(self, engine, make_message):
        """Test mass mention emits immediately."""
        results = await engine.ingest(make_message("@everyone look", mentions_everyone=True))
        assert results and "mention_spam" in results[0].threat_kinds

    @pytest.mark.asyncio
    async def test_plain_messages_create_no_link_or_mention_windows(self, engine, make_message):
        """Test plain messages create no link or mention windows."""
        await engine.ingest(make_message("hello"))
        assert len(engine.windows) == 2

    @pytest.mark.asyncio
    async def test_attachment_only_posts_never_repeat(self, engine, make_message):
        """Test messages without text are not counted as identical content."""
        results = []
        for _ in range(3):
            results += await engine.ingest(make_message(""))

        assert results == []
        assert WindowKey(DetectorType.IDENTICAL_CONTENT, GUILD_ID, USER_ID) not in engine.windows

    @pytest.mark.asyncio
    async def test_suspicion_accumulates_from_detections(self, engine, make_message):
        """Test suspicion accumulates from detections."""
        for i in range(5):
            await engine.ingest(make_message(f"message {i}"))
        assert engine.get_suspicion(GUILD_ID, USER_ID) == pytest.approx(1.0)


# =============================================================================
# Exemptions and Settings
# =============================================================================

class TestExemptionsAndSettings:
    """Test whitelist, disable switch and live settings."""

    @pytest.mark.asyncio
    async def test_whitelisted_user_leaves_no_state(self, engine, make_message, metrics):
        """Test whitelisted user leaves no state."""
        await engine.update_settings({"whitelist": {"users": [USER_ID]}})
        for _ in range(10):
            assert await engine.ingest(make_message("buy now")) == []

        assert len(engine.windows) == 0
        assert engine.get_suspicion(GUILD_ID, USER_ID) == 0
        assert metrics.get_counter(INGESTION_EXEMPT) == 10

    @pytest.mark.asyncio
    async def test_whitelisted_role_and_channel(self, engine, make_message):
        """Test whitelisted role and channel."""
        await engine.update_settings({"whitelist": {"roles": [77], "channels": [88]}})
        for _ in range(5):
            assert await engine.ingest(make_message("x", role_ids={77})) == []
            assert await engine.ingest(make_message("y", channel_id=88)) == []
        assert len(engine.windows) == 0

    @pytest.mark.asyncio
    async def test_disabled_engine_ignores_events(self, engine, make_message):
        """Test disabled engine ignores events."""
        await engine.update_settings({"enabled": False})
        for i in range(10):
            assert await engine.ingest(make_message(f"m{i}")) == []
        assert len(engine.windows) == 0

    @pytest.mark.asyncio
    async def test_threshold_update_applies_to_next_event(self, engine, make_message):
        """Test threshold update applies to next event."""
        await engine.update_settings({"thresholds": {"rapidMessages": 2}})
        await engine.ingest(make_message("one"))
        results = await engine.ingest(make_message("two"))
        assert results and "rapid_messages" in results[0].threat_kinds

    @pytest.mark.asyncio
    async def test_invalid_threshold_keeps_detection_on(self, engine, make_message):
        """Test invalid threshold keeps detection on."""
        await engine.update_settings({"thresholds": {"rapidMessages": 0}})
        assert engine.get_settings().threshold(DetectorType.RAPID_MESSAGES) == 5


# =============================================================================
# Malformed Input
# =============================================================================

class TestMalformedEvents:
    """Test that bad records are dropped and counted."""

    JUNK_OPTIONAL_FIELDS = [
        ("roleIds", 5),
        ("roleIds", "12"),
        ("roleIds", {"12": True}),
        ("mentionsEveryone", "false"),
        ("mentionsEveryone", 1),
        ("hasAvatar", "no"),
        ("mentionCount", "lots"),
        ("mentionCount", -4),
        ("mentionCount", float("inf")),
        ("linkCount", "many"),
        ("accountAgeMs", {}),
        ("content", 12345),
        ("content", ["buy now"]),
    ]

    @pytest.mark.asyncio
    async def test_malformed_counted_not_raised(self, engine, metrics):
        """Test malformed counted not raised."""
        assert await engine.ingest_raw({"kind": "message", "actorId": 1}) == []
        assert await engine.ingest_raw({"kind": "typing", "scopeId": 1, "actorId": 1, "timestamp": 1}) == []
        assert metrics.get_counter(INGESTION_MALFORMED) == 2
        assert len(engine.windows) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", JUNK_OPTIONAL_FIELDS)
    async def test_junk_optional_field_is_least_suspicious(self, engine, clock, metrics, field, value):
        """Test a wrongly typed optional field neither raises nor flags the message."""
        raw = {
            "kind": "message",
            "scopeId": GUILD_ID,
            "actorId": USER_ID,
            "timestamp": clock.now_ms(),
            "content": "hi",
            field: value,
        }

        assert await engine.ingest_raw(raw) == []
        assert metrics.get_counter(INGESTION_MALFORMED) == 0
        assert WindowKey(DetectorType.MENTION_SPAM, GUILD_ID, USER_ID) not in engine.windows
        assert WindowKey(DetectorType.LINK_SPAM, GUILD_ID, USER_ID) not in engine.windows

    def test_junk_optional_fields_parse_to_defaults(self):
        """Test junk role ids, flags and counts parse to their least suspicious values."""
        event = Event.from_dict({
            "kind": "join",
            "scopeId": GUILD_ID,
            "actorId": USER_ID,
            "timestamp": 1,
            "roleIds": 5,
            "mentionsEveryone": "false",
            "hasAvatar": "no",
            "mentionCount": "lots",
            "accountAgeMs": "old",
        })

        assert event.role_ids == frozenset()
        assert event.mentions_everyone is False
        assert event.has_avatar is None
        assert event.mention_count == 0
        assert event.account_age_ms is None

    def test_role_ids_keep_valid_entries(self):
        """Test role id lists drop junk entries but keep numeric strings."""
        event = Event.from_dict({
            "kind": "message",
            "scopeId": GUILD_ID,
            "actorId": USER_ID,
            "timestamp": 1,
            "roleIds": [10, "11", "staff", None, True],
        })
        assert event.role_ids == frozenset({10, 11})

    @pytest.mark.asyncio
    async def test_raw_camel_case_accepted(self, engine, clock):
        """Test raw camel case accepted."""
        for i in range(5):
            results = await engine.ingest_raw({
                "kind": "message",
                "scopeId": GUILD_ID,
                "actorId": USER_ID,
                "timestamp": clock.now_ms(),
                "messageId": i,
                "content": f"raw {i}",
            })
        assert len(results) == 1


# =============================================================================
# Actions, Alerts and Persistence
# =============================================================================

class TestSideEffects:
    """Test that side effects never hold up or break ingestion."""

    @pytest.mark.asyncio
    async def test_auto_moderation_actions_dispatched(self, auto_mod_settings_manager, mock_actuator, clock, make_message):
        """Test auto moderation actions dispatched."""
        engine = DetectionEngine(auto_mod_settings_manager, actuator=mock_actuator, clock=clock)
        for i in range(5):
            await engine.ingest(make_message(f"message {i}"))
        await engine.stop()

        mock_actuator.delete_message.assert_awaited_once()
        mock_actuator.mute_actor.assert_awaited_once()
        mock_actuator.ban_actor.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_actuator_does_not_block_ingest(self, auto_mod_settings_manager, clock, make_message):
        """Test failing actuator does not block ingest."""
        actuator = MagicMock()
        never = asyncio.Event()

        async def hang(*args, **kwargs):
            await never.wait()

        actuator.delete_message = hang
        actuator.mute_actor = AsyncMock(side_effect=RuntimeError("Missing Permissions"))
        actuator.ban_actor = AsyncMock(return_value=False)
        metrics = MetricsCollector()
        engine = DetectionEngine(
            auto_mod_settings_manager, actuator=actuator, clock=clock,
            metrics=metrics, action_timeout=0.05,
        )

        for i in range(5):
            results = await asyncio.wait_for(engine.ingest(make_message(f"message {i}")), timeout=1)
        assert len(results) == 1
        assert engine.log.size() == 1

        await engine.stop()
        assert metrics.get_counter(ACTIONS_FAILED) == 3
        assert engine.log.size() == 1

    @pytest.mark.asyncio
    async def test_alert_and_sink_receive_detection(self, settings_manager, clock, make_message):
        """Test alert and sink receive detection."""
        alert_sink = MagicMock()
        alert_sink.send = AsyncMock()
        detection_sink = MagicMock()
        detection_sink.write = AsyncMock()
        engine = DetectionEngine(settings_manager, alert_sink=alert_sink, detection_sink=detection_sink, clock=clock)

        for _ in range(3):
            results = await engine.ingest(make_message("buy now"))
        await engine.stop()

        alert_sink.send.assert_awaited_once_with(results[0])
        detection_sink.write.assert_awaited_once_with(results[0])

    @pytest.mark.asyncio
    async def test_alert_failure_counted(self, settings_manager, clock, make_message):
        """Test alert failure counted."""
        alert_sink = MagicMock()
        alert_sink.send = AsyncMock(side_effect=ConnectionError("webhook down"))
        metrics = MetricsCollector()
        engine = DetectionEngine(settings_manager, alert_sink=alert_sink, clock=clock, metrics=metrics)

        for _ in range(3):
            results = await engine.ingest(make_message("buy now"))
        await engine.stop()

        assert len(results) == 1
        assert metrics.get_counter(ALERTS_FAILED) == 1
        assert engine.log.size() == 1


# =============================================================================
# Raids
# =============================================================================

class TestRaidDetection:
    """Test join bursts through the engine."""

    @pytest.mark.asyncio
    async def test_raid_detected_and_raiders_kicked(self, auto_mod_settings_manager, mock_actuator, clock, make_join):
        """Test raid detected and raiders kicked."""
        engine = DetectionEngine(auto_mod_settings_manager, actuator=mock_actuator, clock=clock, raid_kick_cap=5)

        detections = []
        for i in range(12):
            detections += await engine.ingest(make_join(
                actor_id=1000 + i,
                username=f"raider{i}",
                account_age_ms=MS_PER_DAY,
                has_avatar=False,
            ))
            clock.advance(1000)
        await engine.stop()

        assert len(detections) == 1
        raid = detections[0]
        assert raid.kind is DetectionKind.RAID
        assert raid.details["joinCount"] == 10
        assert raid.composite_score == pytest.approx(1.0)
        assert mock_actuator.kick_actor.await_count == 5

    @pytest.mark.asyncio
    async def test_established_members_no_kicks(self, auto_mod_settings_manager, mock_actuator, clock, make_join):
        """Test established members no kicks."""
        engine = DetectionEngine(auto_mod_settings_manager, actuator=mock_actuator, clock=clock)

        detections = []
        for i in range(10):
            detections += await engine.ingest(make_join(actor_id=i, username=f"person{chr(97 + i)}x"))
        await engine.stop()

        assert len(detections) == 1
        assert detections[0].composite_score == 0
        mock_actuator.kick_actor.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_whitelisted_joiner_not_counted(self, engine, make_join):
        """Test whitelisted joiner not counted."""
        await engine.update_settings({"whitelist": {"users": [5]}})
        for _ in range(10):
            await engine.ingest(make_join(actor_id=5))
        assert engine.raids.recent_joins(GUILD_ID, 300_000) == []


# =============================================================================
# Background Ticks and Queries
# =============================================================================

class TestBackground:
    """Test decay, cleanup and the query facade."""

    @pytest.mark.asyncio
    async def test_decay_tick_reduces_suspicion(self, engine):
        """Test decay tick reduces suspicion."""
        engine.suspicion.update(GUILD_ID, USER_ID, 0.5)
        await engine.decay_tick()
        await engine.decay_tick()
        assert engine.get_suspicion(GUILD_ID, USER_ID) == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_cleanup_tick_drops_idle_windows(self, engine, make_message, clock):
        """Test cleanup tick drops idle windows."""
        await engine.ingest(make_message("hello"))
        assert len(engine.windows) == 2
        clock.advance(60_001)
        assert await engine.cleanup_tick() == 2
        assert len(engine.windows) == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, engine):
        """Test start and stop."""
        await engine.start()
        assert engine.is_running
        await engine.stop()
        assert not engine.is_running

    @pytest.mark.asyncio
    async def test_query_facade(self, engine, make_message):
        """Test query facade."""
        for _ in range(3):
            await engine.ingest(make_message("buy now"))

        assert len(engine.get_detections(scope_id=GUILD_ID, kind=DetectionKind.SPAM)) == 1
        assert engine.get_detections(kind=DetectionKind.RAID) == []
        assert engine.get_statistics(scope_id=GUILD_ID)["spam"] == 1
        status = engine.get_status()
        assert status["detections"]["spam"] == 1
