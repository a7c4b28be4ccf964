"""
RaidGuard - API Tests
=====================

Tests for the query API routes and error format.
"""

import pytest
from fastapi.testclient import TestClient

from raidguard.api.app import API_PREFIX, create_app
from raidguard.api.config import reset_api_config
from raidguard.api.dependencies import set_engine
from raidguard.services.detection.models import Detection, DetectionKind


GUILD_ID = 111111111111111111
USER_ID = 222222222222222222


@pytest.fixture
def client(engine):
    reset_api_config()
    app = create_app(engine)
    yield TestClient(app)
    set_engine(None)
    reset_api_config()


@pytest.fixture
def seeded_engine(engine, clock):
    """Engine with one spam and one raid detection logged."""
    engine.log.append(Detection(
        id="spam01",
        kind=DetectionKind.SPAM,
        scope_id=GUILD_ID,
        timestamp=clock.now_ms(),
        composite_score=1.0,
        threat_kinds=frozenset({"rapid_messages"}),
        actor_id=USER_ID,
        channel_id=3,
        message_id=4,
    ))
    clock.advance(1000)
    engine.log.append(Detection(
        id="raid01",
        kind=DetectionKind.RAID,
        scope_id=GUILD_ID,
        timestamp=clock.now_ms(),
        composite_score=0.8,
        threat_kinds=frozenset({"mass_join"}),
        details={"joinCount": 10, "timeWindow": 300_000, "joins": []},
    ))
    return engine


# =============================================================================
# Health
# =============================================================================

class TestHealth:
    """Test health endpoints."""

    def test_root_health(self, client):
        """Test root health."""
        assert client.get("/health").json() == {"status": "healthy"}

    def test_engine_health_reports_counters(self, client):
        """Test engine health reports counters."""
        response = client.get(f"{API_PREFIX}/health")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "degraded"
        assert body["data"]["engine_running"] is False
        assert body["data"]["detections"] == {"spam": 0, "raid": 0}

    def test_missing_engine_is_503(self, client):
        """Test missing engine is 503."""
        set_engine(None)
        response = client.get(f"{API_PREFIX}/health")
        assert response.status_code == 503
        assert response.json()["error_code"] == "ENGINE_NOT_INITIALIZED"


# =============================================================================
# Detections
# =============================================================================

class TestDetections:
    """Test detection log queries."""

    def test_list_newest_first(self, seeded_engine, client):
        """Test list newest first."""
        response = client.get(f"{API_PREFIX}/detections")
        assert response.status_code == 200
        data = response.json()["data"]
        assert [d["id"] for d in data] == ["raid01", "spam01"]
        assert data[0]["joinCount"] == 10
        assert data[1]["spamScore"] == 1.0

    def test_filter_by_type(self, seeded_engine, client):
        """Test filter by type."""
        data = client.get(f"{API_PREFIX}/detections", params={"type": "spam"}).json()["data"]
        assert [d["type"] for d in data] == ["spam"]

    def test_filter_by_guild(self, seeded_engine, client):
        """Test filter by guild."""
        data = client.get(f"{API_PREFIX}/detections", params={"guild_id": 999}).json()["data"]
        assert data == []

    def test_invalid_type_rejected(self, client):
        """Test invalid type rejected."""
        response = client.get(f"{API_PREFIX}/detections", params={"type": "phishing"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "VALIDATION_INVALID_TYPE"

    def test_limit_out_of_range_rejected(self, client):
        """Test limit out of range rejected."""
        response = client.get(f"{API_PREFIX}/detections", params={"limit": 0})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_FAILED"

    def test_statistics(self, seeded_engine, client):
        """Test statistics."""
        response = client.get(f"{API_PREFIX}/detections/statistics", params={"guild_id": GUILD_ID})
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["spam"] == 1
        assert data["raids"] == 1
        assert data["avgSpamScore"] == 1.0


# =============================================================================
# Settings
# =============================================================================

class TestSettings:
    """Test reading and patching settings."""

    def test_get_settings(self, client):
        """Test get settings."""
        data = client.get(f"{API_PREFIX}/settings").json()["data"]
        assert data["enabled"] is True
        assert data["thresholds"]["rapidMessages"] == 5

    def test_patch_merges_partial_update(self, client, engine):
        """Test patch merges partial update."""
        response = client.patch(f"{API_PREFIX}/settings", json={
            "sensitivity": "high",
            "thresholds": {"linkSpam": 4},
            "whitelist": {"users": [USER_ID]},
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["sensitivity"] == "high"
        assert data["thresholds"]["linkSpam"] == 4
        assert data["thresholds"]["rapidMessages"] == 5
        assert data["whitelist"]["users"] == [USER_ID]
        assert USER_ID in engine.get_settings().whitelist.users

    def test_patch_invalid_threshold_falls_back(self, client):
        """Test patch invalid threshold falls back."""
        data = client.patch(f"{API_PREFIX}/settings", json={"thresholds": {"massJoin": -3}}).json()["data"]
        assert data["thresholds"]["massJoin"] == 10

    def test_patch_unknown_sensitivity_rejected(self, client):
        """Test patch unknown sensitivity rejected."""
        response = client.patch(f"{API_PREFIX}/settings", json={"sensitivity": "extreme"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_FAILED"

    def test_patch_unknown_field_rejected(self, client):
        """Test patch unknown field rejected."""
        response = client.patch(f"{API_PREFIX}/settings", json={"volume": 11})
        assert response.status_code == 400


# =============================================================================
# Suspicion
# =============================================================================

class TestSuspicion:
    """Test suspicion lookups."""

    def test_tracked_user(self, client, engine):
        """Test tracked user."""
        engine.suspicion.update(GUILD_ID, USER_ID, 0.45)
        response = client.get(f"{API_PREFIX}/suspicion/{USER_ID}", params={"guild_id": GUILD_ID})
        assert response.json()["data"] == {"guildId": GUILD_ID, "userId": USER_ID, "suspicion": 0.45}

    def test_untracked_user_is_zero(self, client):
        """Test untracked user is zero."""
        response = client.get(f"{API_PREFIX}/suspicion/5", params={"guild_id": GUILD_ID})
        assert response.json()["data"]["suspicion"] == 0

    def test_guild_required(self, client):
        """Test guild required."""
        response = client.get(f"{API_PREFIX}/suspicion/5")
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_FAILED"
