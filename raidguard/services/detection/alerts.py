"""
Alert Sinks
===========

Moderator-facing notifications, one per emitted detection.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import aiohttp

from raidguard.core.constants import WEBHOOK_TIMEOUT
from raidguard.core.logger import NY_TZ, logger
from raidguard.utils.async_utils import gather_with_logging

from .models import Detection, DetectionKind


# =============================================================================
# Embed Colors
# =============================================================================

SPAM_COLOR = 0xFFA500
RAID_COLOR = 0xFF0000


class AlertDeliveryError(Exception):
    """Raised when an alert cannot be delivered."""
    pass


class AlertSink(Protocol):
    """Receives the full Detection record."""

    async def send(self, detection: Detection) -> None:
        ...


# =============================================================================
# Formatting
# =============================================================================

def _format_time(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).astimezone(NY_TZ).strftime(
        "%Y-%m-%d %I:%M:%S %p %Z"
    )


def alert_fields(detection: Detection) -> List[Tuple[str, str]]:
    """Summary (key, value) pairs shared by log and webhook alerts."""
    fields = [
        ("Detection", detection.id),
        ("Guild", str(detection.scope_id)),
        ("Time", _format_time(detection.timestamp)),
    ]
    if detection.kind is DetectionKind.SPAM:
        fields.extend([
            ("User", str(detection.actor_id)),
            ("Channel", str(detection.channel_id) if detection.channel_id else "Unknown"),
            ("Spam Score", f"{detection.composite_score:.2f}"),
            ("Threats", ", ".join(sorted(detection.threat_kinds)) or "None"),
        ])
    else:
        fields.extend([
            ("Joins", str(detection.details.get("joinCount", 0))),
            ("Window", f"{detection.details.get('timeWindow', 0) // 1000}s"),
            ("Suspicion", f"{detection.composite_score:.2f}"),
        ])
    return fields


def build_embed(detection: Detection) -> Dict[str, Any]:
    """Discord embed payload for a detection."""
    is_raid = detection.kind is DetectionKind.RAID
    return {
        "title": "🚨 Raid Detected" if is_raid else "⚠️ Spam Detected",
        "color": RAID_COLOR if is_raid else SPAM_COLOR,
        "fields": [
            {"name": name, "value": value, "inline": True}
            for name, value in alert_fields(detection)
        ],
        "timestamp": datetime.fromtimestamp(detection.timestamp / 1000, tz=timezone.utc).isoformat(),
        "footer": {"text": f"Detection {detection.id}"},
    }


# =============================================================================
# Sinks
# =============================================================================

class LoggingAlertSink:
    """Writes each detection to the tree log."""

    async def send(self, detection: Detection) -> None:
        title = "RAID DETECTED" if detection.kind is DetectionKind.RAID else "SPAM DETECTED"
        emoji = "🚨" if detection.kind is DetectionKind.RAID else "⚠️"
        logger.tree(title, alert_fields(detection), emoji=emoji)


class WebhookAlertSink:
    """Posts each detection as an embed to a Discord webhook."""

    def __init__(
        self,
        url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = WEBHOOK_TIMEOUT,
    ) -> None:
        self.url = url
        self._session = session
        self._timeout = timeout

    async def send(self, detection: Detection) -> None:
        payload = {"embeds": [build_embed(detection)]}

        if self._session is not None:
            await self._post(self._session, payload)
            return
        async with aiohttp.ClientSession() as session:
            await self._post(session, payload)

    async def _post(self, session: aiohttp.ClientSession, payload: Dict[str, Any]) -> None:
        async with session.post(
            self.url,
            json=payload,
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        ) as resp:
            if resp.status >= 400:
                raise AlertDeliveryError(f"Webhook returned {resp.status}")


class CompositeAlertSink:
    """Fans a detection out to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Sequence[AlertSink]) -> None:
        self.sinks = list(sinks)

    async def send(self, detection: Detection) -> None:
        await gather_with_logging(
            *[(type(sink).__name__, sink.send(detection)) for sink in self.sinks],
            context=f"Alert {detection.id}",
        )


__all__ = [
    "AlertDeliveryError",
    "AlertSink",
    "alert_fields",
    "build_embed",
    "LoggingAlertSink",
    "WebhookAlertSink",
    "CompositeAlertSink",
]
