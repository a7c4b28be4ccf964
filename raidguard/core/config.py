"""
RaidGuard - Configuration Module
================================

Process configuration loaded from environment variables.

DESIGN:
    Config covers how the engine runs (files, schedules, timeouts, webhooks).
    What the engine detects (thresholds, windows, whitelist) lives in the
    detection Settings snapshot, which can change at runtime.

    Key patterns:
    - Singleton via get_config() so the environment is read once
    - Out-of-range integers are clamped with a warning, never rejected
    - Invalid webhook URLs are ignored with a warning
"""

import os
from dataclasses import dataclass
from typing import Optional

from raidguard.core.constants import (
    ACTION_TIMEOUT,
    CLEANUP_INTERVAL,
    DECAY_INTERVAL,
    DECAY_STEP,
    RAID_KICK_CAP,
)
from raidguard.core.logger import logger


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Engine configuration loaded from environment variables.

    Attributes:
        discord_token: Bot token, only needed by the Discord adapter.
        settings_file: JSON file backing the detection settings.
        detections_file: Optional JSON file mirroring the detection log.
        alert_webhook_url: Webhook that receives one embed per detection.
        error_webhook_url: Webhook that receives logged errors.
        decay_interval: Seconds between suspicion decay ticks.
        decay_step: Amount subtracted from each suspicion value per tick.
        cleanup_interval: Seconds between idle window sweeps.
        action_timeout: Seconds before a moderation call counts as failed.
        raid_kick_cap: Maximum kicks issued for a single raid burst.
    """

    discord_token: Optional[str] = None
    settings_file: str = "data/detection.json"
    detections_file: Optional[str] = None

    # -------------------------------------------------------------------------
    # Optional: Webhooks
    # -------------------------------------------------------------------------

    alert_webhook_url: Optional[str] = None
    error_webhook_url: Optional[str] = None

    # -------------------------------------------------------------------------
    # Background Schedules
    # -------------------------------------------------------------------------

    decay_interval: int = DECAY_INTERVAL
    decay_step: float = DECAY_STEP
    cleanup_interval: int = CLEANUP_INTERVAL

    # -------------------------------------------------------------------------
    # Moderation Actions
    # -------------------------------------------------------------------------

    action_timeout: int = ACTION_TIMEOUT
    raid_kick_cap: int = RAID_KICK_CAP


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: int = None,
    max_val: int = None,
) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse "true"/"1"/"yes" style flags."""
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """
    Validate URL format for webhooks.

    Returns:
        URL if valid, None if invalid or empty.
    """
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Config object with every value validated or defaulted.
    """
    decay_percent = _parse_int_with_default(
        os.getenv("RAIDGUARD_DECAY_STEP_PERCENT"),
        int(DECAY_STEP * 100),
        "RAIDGUARD_DECAY_STEP_PERCENT",
        min_val=1,
        max_val=100,
    )

    return Config(
        discord_token=os.getenv("DISCORD_TOKEN") or None,
        settings_file=os.getenv("RAIDGUARD_SETTINGS_FILE", "data/detection.json"),
        detections_file=os.getenv("RAIDGUARD_DETECTIONS_FILE") or None,
        alert_webhook_url=_validate_url(
            os.getenv("RAIDGUARD_ALERT_WEBHOOK_URL"), "RAIDGUARD_ALERT_WEBHOOK_URL"
        ),
        error_webhook_url=_validate_url(
            os.getenv("RAIDGUARD_ERROR_WEBHOOK_URL"), "RAIDGUARD_ERROR_WEBHOOK_URL"
        ),
        decay_interval=_parse_int_with_default(
            os.getenv("RAIDGUARD_DECAY_INTERVAL"), DECAY_INTERVAL,
            "RAIDGUARD_DECAY_INTERVAL", min_val=1, max_val=86400,
        ),
        decay_step=decay_percent / 100,
        cleanup_interval=_parse_int_with_default(
            os.getenv("RAIDGUARD_CLEANUP_INTERVAL"), CLEANUP_INTERVAL,
            "RAIDGUARD_CLEANUP_INTERVAL", min_val=1, max_val=3600,
        ),
        action_timeout=_parse_int_with_default(
            os.getenv("RAIDGUARD_ACTION_TIMEOUT"), ACTION_TIMEOUT,
            "RAIDGUARD_ACTION_TIMEOUT", min_val=1, max_val=60,
        ),
        raid_kick_cap=_parse_int_with_default(
            os.getenv("RAIDGUARD_RAID_KICK_CAP"), RAID_KICK_CAP,
            "RAIDGUARD_RAID_KICK_CAP", min_val=0, max_val=1000,
        ),
    )


def require_discord_token(config: Config) -> str:
    """
    Return the Discord token or fail fast.

    Raises:
        ConfigValidationError: If DISCORD_TOKEN is not set.
    """
    if not config.discord_token:
        raise ConfigValidationError("Missing required: DISCORD_TOKEN")
    return config.discord_token


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached config so the next get_config() re-reads the env."""
    global _config
    _config = None


# =============================================================================
# Config Logging
# =============================================================================

def validate_and_log_config() -> Config:
    """Load the config and log a startup summary."""
    config = get_config()

    logger.tree_nested("Configuration Loaded", [
        ("Storage", [
            ("Settings File", config.settings_file),
            ("Detections File", config.detections_file or "Memory only"),
        ]),
        ("Schedules", [
            ("Decay", f"{config.decay_interval}s (-{config.decay_step:.2f})"),
            ("Cleanup", f"{config.cleanup_interval}s"),
        ]),
        ("Actions", [
            ("Timeout", f"{config.action_timeout}s"),
            ("Raid Kick Cap", str(config.raid_kick_cap)),
            ("Alert Webhook", "Set" if config.alert_webhook_url else "Not set"),
        ]),
    ], emoji="⚙️")

    return config


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "get_config",
    "load_config",
    "reset_config",
    "require_discord_token",
    "validate_and_log_config",
]
