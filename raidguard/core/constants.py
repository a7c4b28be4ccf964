"""
RaidGuard - Centralized Constants
=================================

Engine-wide time units, schedules and limits.
Import from this module instead of hardcoding values.
"""

# =============================================================================
# Time Constants
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR
MS_PER_WEEK = 7 * MS_PER_DAY

# =============================================================================
# Background Schedules (in seconds)
# =============================================================================

DECAY_INTERVAL = 5 * SECONDS_PER_MINUTE   # Suspicion decay tick
CLEANUP_INTERVAL = SECONDS_PER_MINUTE     # Idle window / raid window sweep

# =============================================================================
# Suspicion
# =============================================================================

DECAY_STEP = 0.1                          # Subtracted from every actor per tick
SUSPICION_MAX = 1.0

# =============================================================================
# Moderation Actions
# =============================================================================

ACTION_TIMEOUT = 5                        # Seconds before an actuator call fails
RAID_KICK_CAP = 25                        # Max kicks issued per raid burst
MUTE_DURATION = 10 * SECONDS_PER_MINUTE   # Timeout applied by mute actions

# =============================================================================
# Detection Log
# =============================================================================

SPAM_LOG_CAPACITY = 500
RAID_LOG_CAPACITY = 100
STATS_SCAN_LIMIT = 1000                   # Detections considered by statistics
TOP_THREATS_LIMIT = 5

# =============================================================================
# Network
# =============================================================================

API_PORT = 8090
WEBHOOK_TIMEOUT = 10


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "SECONDS_PER_MINUTE",
    "SECONDS_PER_HOUR",
    "SECONDS_PER_DAY",
    "MS_PER_SECOND",
    "MS_PER_MINUTE",
    "MS_PER_HOUR",
    "MS_PER_DAY",
    "MS_PER_WEEK",
    "DECAY_INTERVAL",
    "CLEANUP_INTERVAL",
    "DECAY_STEP",
    "SUSPICION_MAX",
    "ACTION_TIMEOUT",
    "RAID_KICK_CAP",
    "MUTE_DURATION",
    "SPAM_LOG_CAPACITY",
    "RAID_LOG_CAPACITY",
    "STATS_SCAN_LIMIT",
    "TOP_THREATS_LIMIT",
    "API_PORT",
    "WEBHOOK_TIMEOUT",
]
