"""
Detection Constants
===================

Default thresholds, windows, scoring weights and patterns for the
pattern detectors and the raid analyzer.
"""

import re
from typing import Dict, Tuple

from raidguard.core.constants import MS_PER_WEEK

from .models import DetectorType


# =============================================================================
# Default Thresholds and Windows
# =============================================================================

DEFAULT_THRESHOLDS: Dict[DetectorType, int] = {
    DetectorType.RAPID_MESSAGES: 5,
    DetectorType.IDENTICAL_CONTENT: 3,
    DetectorType.MASS_JOIN: 10,
    DetectorType.LINK_SPAM: 3,
    DetectorType.MENTION_SPAM: 5,
}

DEFAULT_WINDOWS_MS: Dict[DetectorType, int] = {
    DetectorType.RAPID_MESSAGES: 30_000,
    DetectorType.IDENTICAL_CONTENT: 60_000,
    DetectorType.MASS_JOIN: 300_000,
    DetectorType.LINK_SPAM: 60_000,
    DetectorType.MENTION_SPAM: 30_000,
}

SENSITIVITY_MULTIPLIERS: Dict[str, float] = {
    "low": 1.5,
    "medium": 1.0,
    "high": 0.5,
}
DEFAULT_SENSITIVITY = "medium"


# =============================================================================
# Composite Scoring
# =============================================================================

# A detector contributes to the composite only when its score exceeds this
SIGNIFICANCE_FLOORS: Dict[DetectorType, float] = {
    DetectorType.RAPID_MESSAGES: 0.8,
    DetectorType.IDENTICAL_CONTENT: 0.8,
    DetectorType.LINK_SPAM: 0.7,
    DetectorType.MENTION_SPAM: 0.7,
    DetectorType.SUSPICIOUS_CONTENT: 0.0,
}

EMIT_SCORE = 0.7


# =============================================================================
# Link Spam
# =============================================================================

URL_PATTERN = re.compile(r"https?://[^\s]+")

SUSPICIOUS_TLDS: Tuple[str, ...] = (".tk", ".ml", ".ga", ".cf", ".ru", ".su")
URL_SHORTENERS: Tuple[str, ...] = ("bit.ly", "tinyurl.com", "short.link", "t.co")
SUSPICIOUS_DOMAIN_WEIGHT = 0.3
UNKNOWN_DOMAIN = "unknown"


# =============================================================================
# Mention Spam
# =============================================================================

MASS_MENTION_BONUS = 0.5


# =============================================================================
# Suspicious Content
# =============================================================================

INVITE_PATTERN = re.compile(r"discord\.gg/[a-zA-Z0-9]+")
EMOJI_PATTERN = re.compile(
    "["
    "\U0001F300-\U0001F5FF"
    "\U0001F900-\U0001F9FF"
    "\U0001F600-\U0001F64F"
    "\U0001F680-\U0001F6FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "]"
)
UPPERCASE_PATTERN = re.compile(r"[A-Z]")
CHAR_REPEAT_PATTERN = re.compile(r"(.)\1{4,}")

INVITE_WEIGHT = 0.6
EMOJI_WEIGHT = 0.3
EMOJI_LIMIT = 10
CAPS_WEIGHT = 0.4
CAPS_RATIO = 0.7
CAPS_MIN_LENGTH = 10
CHAR_REPEAT_WEIGHT = 0.3
SUSPICIOUS_CONTENT_THREAT = 0.8


# =============================================================================
# Raid Analysis
# =============================================================================

NEW_ACCOUNT_AGE_MS = MS_PER_WEEK
NEW_ACCOUNT_WEIGHT = 0.4
NO_AVATAR_WEIGHT = 0.3
SIMILAR_NAME_WEIGHT = 0.3
SIMILAR_NAME_MIN_LENGTH = 4
DIGITS_PATTERN = re.compile(r"\d+")
RAID_KICK_SCORE = 0.7


# =============================================================================
# Auto-Moderation
# =============================================================================

DELETE_MESSAGE_SCORE = 0.8
MUTE_ACTOR_SCORE = 0.9
PERSISTENT_OFFENDER_SUSPICION = 1.0


__all__ = [
    "DEFAULT_THRESHOLDS",
    "DEFAULT_WINDOWS_MS",
    "SENSITIVITY_MULTIPLIERS",
    "DEFAULT_SENSITIVITY",
    "SIGNIFICANCE_FLOORS",
    "EMIT_SCORE",
    "URL_PATTERN",
    "SUSPICIOUS_TLDS",
    "URL_SHORTENERS",
    "SUSPICIOUS_DOMAIN_WEIGHT",
    "UNKNOWN_DOMAIN",
    "MASS_MENTION_BONUS",
    "INVITE_PATTERN",
    "EMOJI_PATTERN",
    "UPPERCASE_PATTERN",
    "CHAR_REPEAT_PATTERN",
    "INVITE_WEIGHT",
    "EMOJI_WEIGHT",
    "EMOJI_LIMIT",
    "CAPS_WEIGHT",
    "CAPS_RATIO",
    "CAPS_MIN_LENGTH",
    "CHAR_REPEAT_WEIGHT",
    "SUSPICIOUS_CONTENT_THREAT",
    "NEW_ACCOUNT_AGE_MS",
    "NEW_ACCOUNT_WEIGHT",
    "NO_AVATAR_WEIGHT",
    "SIMILAR_NAME_WEIGHT",
    "SIMILAR_NAME_MIN_LENGTH",
    "DIGITS_PATTERN",
    "RAID_KICK_SCORE",
    "DELETE_MESSAGE_SCORE",
    "MUTE_ACTOR_SCORE",
    "PERSISTENT_OFFENDER_SUSPICION",
]
