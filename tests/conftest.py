"""
RaidGuard - Test Fixtures
=========================

Shared fixtures for all tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

# Set up test environment before importing modules
os.environ["TESTING"] = "1"
os.environ.setdefault("RAIDGUARD_LOG_DIR", tempfile.mkdtemp(prefix="raidguard-logs-"))

from raidguard.core.clock import ManualClock
from raidguard.services.detection.engine import DetectionEngine
from raidguard.services.detection.models import Event, EventKind
from raidguard.services.detection.settings import InMemorySettingsStore, SettingsManager
from raidguard.utils.metrics import MetricsCollector


# Fixed starting point for every ManualClock (2024-01-01 00:00:00 UTC)
START_MS = 1_704_067_200_000

GUILD_ID = 111111111111111111
USER_ID = 222222222222222222
CHANNEL_ID = 333333333333333333


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """A clock that only moves when the test moves it."""
    return ManualClock(START_MS)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def settings_manager():
    """Settings manager on default settings, kept in memory."""
    return SettingsManager(InMemorySettingsStore())


@pytest.fixture
def auto_mod_settings_manager():
    """Settings manager with every auto-moderation action switched on."""
    return SettingsManager(InMemorySettingsStore({
        "autoModeration": {
            "enabled": True,
            "deleteMessages": True,
            "muteSpammers": True,
            "kickRaiders": True,
            "banPersistentOffenders": True,
        },
    }))


@pytest.fixture
def mock_actuator():
    """Actuator whose every action succeeds."""
    actuator = MagicMock()
    actuator.delete_message = AsyncMock(return_value=True)
    actuator.mute_actor = AsyncMock(return_value=True)
    actuator.kick_actor = AsyncMock(return_value=True)
    actuator.ban_actor = AsyncMock(return_value=True)
    return actuator


@pytest.fixture
def engine(settings_manager, mock_actuator, clock, metrics):
    """Engine on default settings with a succeeding actuator."""
    return DetectionEngine(
        settings_manager,
        actuator=mock_actuator,
        clock=clock,
        metrics=metrics,
    )


# =============================================================================
# Event Factories
# =============================================================================

@pytest.fixture
def make_message(clock):
    """Factory for message events stamped with the current clock time."""
    counter = {"id": 1000}

    def _create(
        content: str = "hello",
        actor_id: int = USER_ID,
        scope_id: int = GUILD_ID,
        channel_id: int = CHANNEL_ID,
        mention_count: int = 0,
        mentions_everyone: bool = False,
        role_ids=frozenset(),
        timestamp: int = None,
    ) -> Event:
        counter["id"] += 1
        return Event(
            kind=EventKind.MESSAGE,
            scope_id=scope_id,
            actor_id=actor_id,
            timestamp=clock.now_ms() if timestamp is None else timestamp,
            channel_id=channel_id,
            message_id=counter["id"],
            content=content,
            mention_count=mention_count,
            mentions_everyone=mentions_everyone,
            role_ids=frozenset(role_ids),
        )
    return _create


@pytest.fixture
def make_join(clock):
    """Factory for join events stamped with the current clock time."""
    def _create(
        actor_id: int,
        username: str = "member",
        account_age_ms: int = None,
        has_avatar: bool = None,
        scope_id: int = GUILD_ID,
    ) -> Event:
        return Event(
            kind=EventKind.JOIN,
            scope_id=scope_id,
            actor_id=actor_id,
            timestamp=clock.now_ms(),
            account_age_ms=account_age_ms,
            has_avatar=has_avatar,
            username=username,
        )
    return _create
