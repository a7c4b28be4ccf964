"""
Detection Data Models
=====================

Dataclasses for ingested events, window entries, detector results,
detections, suspicion scores, and join records.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional


# =============================================================================
# Enums
# =============================================================================

class EventKind(str, Enum):
    """Kinds of events the engine ingests."""
    MESSAGE = "message"
    JOIN = "join"


class DetectorType(str, Enum):
    """Detector names, also used as window key prefixes and threat kinds."""
    RAPID_MESSAGES = "rapid_messages"
    IDENTICAL_CONTENT = "identical_content"
    LINK_SPAM = "link_spam"
    MENTION_SPAM = "mention_spam"
    SUSPICIOUS_CONTENT = "suspicious_content"
    MASS_JOIN = "mass_join"


class DetectionKind(str, Enum):
    """Kinds of emitted detections."""
    SPAM = "spam"
    RAID = "raid"


# =============================================================================
# Errors
# =============================================================================

class MalformedEventError(ValueError):
    """Raised when an incoming event lacks a required field."""
    pass


# =============================================================================
# Events
# =============================================================================

def _require_int(data: Mapping[str, Any], *names: str) -> int:
    """Read the first present key in names as an int, or raise."""
    for name in names:
        value = data.get(name)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            break
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            raise MalformedEventError(f"Invalid {name}: {value!r}")
    raise MalformedEventError(f"Missing required field: {names[0]}")


def _optional_int(data: Mapping[str, Any], *names: str) -> Optional[int]:
    """Read an optional int, treating junk as absent."""
    for name in names:
        value = data.get(name)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return None
    return None


def id_set(values: Any) -> FrozenSet[int]:
    """Parse a list of ids, skipping anything that isn't an integer id."""
    if not isinstance(values, Iterable) or isinstance(values, (str, bytes, Mapping)):
        return frozenset()
    result = set()
    for value in values:
        if isinstance(value, bool):
            continue
        try:
            result.add(int(value))
        except (TypeError, ValueError, OverflowError):
            continue
    return frozenset(result)


@dataclass(frozen=True)
class Event:
    """
    A normalized message or join event.

    Optional fields default to their least suspicious value: no mentions,
    an avatar present, and an unknown (treated as old) account age.
    """
    kind: EventKind
    scope_id: int
    actor_id: int
    timestamp: int
    channel_id: Optional[int] = None
    message_id: Optional[int] = None
    content: Optional[str] = None
    mention_count: int = 0
    mentions_everyone: bool = False
    link_count: Optional[int] = None
    account_age_ms: Optional[int] = None
    has_avatar: Optional[bool] = None
    username: Optional[str] = None
    role_ids: FrozenSet[int] = frozenset()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """
        Build an Event from a loosely-typed mapping.

        Accepts snake_case or camelCase keys.

        Raises:
            MalformedEventError: If kind, scope, actor or timestamp is missing.
        """
        if not isinstance(data, Mapping):
            raise MalformedEventError("Event must be a mapping")

        raw_kind = data.get("kind")
        try:
            kind = EventKind(raw_kind)
        except ValueError:
            raise MalformedEventError(f"Invalid kind: {raw_kind!r}")

        role_ids = data.get("role_ids", data.get("roleIds"))
        has_avatar = data.get("has_avatar", data.get("hasAvatar"))
        everyone = data.get("mentions_everyone", data.get("mentionsEveryone"))

        return cls(
            kind=kind,
            scope_id=_require_int(data, "scope_id", "scopeId"),
            actor_id=_require_int(data, "actor_id", "actorId"),
            timestamp=_require_int(data, "timestamp"),
            channel_id=_optional_int(data, "channel_id", "channelId"),
            message_id=_optional_int(data, "message_id", "messageId"),
            content=data.get("content") if isinstance(data.get("content"), str) else None,
            mention_count=max(_optional_int(data, "mention_count", "mentionCount") or 0, 0),
            mentions_everyone=everyone if isinstance(everyone, bool) else False,
            link_count=_optional_int(data, "link_count", "linkCount"),
            account_age_ms=_optional_int(data, "account_age_ms", "accountAgeMs"),
            has_avatar=has_avatar if isinstance(has_avatar, bool) else None,
            username=data.get("username") if isinstance(data.get("username"), str) else None,
            role_ids=id_set(role_ids),
        )


# =============================================================================
# Sliding Windows
# =============================================================================

class WindowKey(NamedTuple):
    """Identifies one sliding buffer."""
    detector_type: DetectorType
    scope_id: int
    actor_id: Optional[int]


class WindowEntry(NamedTuple):
    """A timestamped, detector-specific payload."""
    timestamp: int
    payload: Any = None


# =============================================================================
# Detector Output
# =============================================================================

@dataclass(frozen=True)
class DetectorResult:
    """Score and verdict from a single detector."""
    type: DetectorType
    score: float
    is_threat: bool
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "score": round(self.score, 4),
            "threat": self.is_threat,
            "details": dict(self.details),
        }


# =============================================================================
# Joins
# =============================================================================

@dataclass(frozen=True)
class JoinRecord:
    """Record of a member join for raid detection."""
    actor_id: int
    username: str
    timestamp: int
    account_age_ms: Optional[int] = None
    has_avatar: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.actor_id,
            "username": self.username,
            "timestamp": self.timestamp,
            "accountAge": self.account_age_ms,
            "hasAvatar": self.has_avatar,
        }


# =============================================================================
# Detections
# =============================================================================

def new_detection_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class Detection:
    """An emitted spam or raid detection. Immutable once logged."""
    id: str
    kind: DetectionKind
    scope_id: int
    timestamp: int
    composite_score: float
    threat_kinds: FrozenSet[str] = frozenset()
    actor_id: Optional[int] = None
    channel_id: Optional[int] = None
    message_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def participants(self) -> List[int]:
        """Actor ids of the joiners in a raid detection."""
        return [j["userId"] for j in self.details.get("joins", [])]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire format."""
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "guildId": self.scope_id,
            "timestamp": self.timestamp,
            "threats": sorted(self.threat_kinds),
        }
        if self.kind is DetectionKind.SPAM:
            data.update({
                "userId": self.actor_id,
                "channelId": self.channel_id,
                "messageId": self.message_id,
                "spamScore": round(self.composite_score, 4),
                "details": self.details.get("results", []),
            })
        else:
            data.update({
                "joinCount": self.details.get("joinCount", 0),
                "timeWindow": self.details.get("timeWindow", 0),
                "joins": self.details.get("joins", []),
                "suspicionScore": round(self.composite_score, 4),
            })
        return data


# =============================================================================
# Suspicion
# =============================================================================

@dataclass
class SuspicionScore:
    """Decaying per-actor reputation within one scope."""
    scope_id: int
    actor_id: int
    value: float
    last_updated: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guildId": self.scope_id,
            "userId": self.actor_id,
            "value": round(self.value, 4),
            "lastUpdated": self.last_updated,
        }


__all__ = [
    "EventKind",
    "DetectorType",
    "DetectionKind",
    "MalformedEventError",
    "Event",
    "WindowKey",
    "WindowEntry",
    "DetectorResult",
    "JoinRecord",
    "Detection",
    "new_detection_id",
    "id_set",
    "SuspicionScore",
]
