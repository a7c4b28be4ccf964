"""
Detection Log & Statistics
==========================

Bounded in-memory history of emitted detections, with an optional
persistence sink.

DESIGN:
    One fixed-size deque per kind (spam 500, raid 100). Appending to a
    full deque evicts the oldest entry. Queries copy the deque before
    filtering, so a reader iterates a consistent snapshot even while
    new detections are appended.

    Persistence is best effort. A sink failure is logged and counted,
    and the in-memory log keeps the detection regardless.
"""

import asyncio
import json
from collections import Counter, deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Protocol

from raidguard.core.clock import Clock, SystemClock
from raidguard.core.constants import (
    MS_PER_DAY,
    RAID_LOG_CAPACITY,
    SPAM_LOG_CAPACITY,
    STATS_SCAN_LIMIT,
    TOP_THREATS_LIMIT,
)
from raidguard.core.logger import logger

from .models import Detection, DetectionKind
from .settings import file_lock, write_json_atomic


# =============================================================================
# Persistence Sink
# =============================================================================

class DetectionSink(Protocol):
    """Receives a copy of every logged detection."""

    async def write(self, detection: Detection) -> None:
        ...


class JsonDetectionSink:
    """
    Mirrors detections into a JSON file, newest first.

    Uses the "spamPatterns" and "detectedRaids" keys of the settings file
    format. Both classes take file_lock() around their read-modify-write,
    so the sink can share a file with JsonSettingsStore.
    """

    KEYS = {
        DetectionKind.SPAM: ("spamPatterns", SPAM_LOG_CAPACITY),
        DetectionKind.RAID: ("detectedRaids", RAID_LOG_CAPACITY),
    }

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _write_sync(self, detection: Detection) -> None:
        with file_lock(self.path):
            data: Dict[str, Any] = {}
            if self.path.exists():
                with open(self.path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = loaded

            key, capacity = self.KEYS[detection.kind]
            entries = data.get(key) if isinstance(data.get(key), list) else []
            entries.insert(0, detection.to_dict())
            data[key] = entries[:capacity]
            write_json_atomic(self.path, data)

    async def write(self, detection: Detection) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write_sync, detection)


# =============================================================================
# Detection Log
# =============================================================================

class DetectionLog:
    """Append-only ring buffers for spam and raid detections."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        spam_capacity: int = SPAM_LOG_CAPACITY,
        raid_capacity: int = RAID_LOG_CAPACITY,
    ) -> None:
        self._clock = clock or SystemClock()
        self._buffers: Dict[DetectionKind, Deque[Detection]] = {
            DetectionKind.SPAM: deque(maxlen=spam_capacity),
            DetectionKind.RAID: deque(maxlen=raid_capacity),
        }

    def append(self, detection: Detection) -> None:
        self._buffers[detection.kind].append(detection)

    def size(self, kind: Optional[DetectionKind] = None) -> int:
        if kind is not None:
            return len(self._buffers[kind])
        return sum(len(b) for b in self._buffers.values())

    # =========================================================================
    # Queries
    # =========================================================================

    def query(
        self,
        scope_id: Optional[int] = None,
        kind: Optional[DetectionKind] = None,
        limit: int = 50,
        since_ms: Optional[int] = None,
        until_ms: Optional[int] = None,
        threat_kind: Optional[str] = None,
    ) -> List[Detection]:
        """
        Filter detections, newest first.

        Args:
            scope_id: Only detections in this guild.
            kind: Only spam or only raid detections.
            limit: Maximum number returned.
            since_ms: Only detections at or after this time.
            until_ms: Only detections at or before this time.
            threat_kind: Only detections that flagged this detector.
        """
        kinds = [kind] if kind is not None else list(self._buffers.keys())
        detections: List[Detection] = []
        for k in kinds:
            detections.extend(list(self._buffers[k]))

        if scope_id is not None:
            detections = [d for d in detections if d.scope_id == scope_id]
        if since_ms is not None:
            detections = [d for d in detections if d.timestamp >= since_ms]
        if until_ms is not None:
            detections = [d for d in detections if d.timestamp <= until_ms]
        if threat_kind is not None:
            detections = [d for d in detections if threat_kind in d.threat_kinds]

        detections.sort(key=lambda d: d.timestamp, reverse=True)
        return detections[:max(limit, 0)]

    def statistics(self, scope_id: Optional[int] = None, days: int = 7) -> Dict[str, Any]:
        """
        Aggregate counts over a trailing day-window.

        Returns:
            total, spam, raids, avgSpamScore and up to five topThreats.
        """
        since = self._clock.now_ms() - days * MS_PER_DAY
        detections = self.query(scope_id=scope_id, limit=STATS_SCAN_LIMIT, since_ms=since)

        spam = [d for d in detections if d.kind is DetectionKind.SPAM]
        raids = [d for d in detections if d.kind is DetectionKind.RAID]
        scored = [d.composite_score for d in spam if d.composite_score]

        threat_counts = Counter()
        for d in detections:
            threat_counts.update(d.threat_kinds)

        return {
            "total": len(detections),
            "spam": len(spam),
            "raids": len(raids),
            "avgSpamScore": round(sum(scored) / len(scored), 4) if scored else 0,
            "topThreats": [
                {"threat": threat, "count": count}
                for threat, count in threat_counts.most_common(TOP_THREATS_LIMIT)
            ],
        }


async def persist(sink: DetectionSink, detection: Detection) -> bool:
    """Write to a sink, logging instead of raising. Returns success."""
    try:
        await sink.write(detection)
        return True
    except Exception as e:
        logger.warning("Detection Persist Failed", [
            ("Detection", detection.id),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:100]),
        ])
        return False


__all__ = [
    "DetectionSink",
    "JsonDetectionSink",
    "DetectionLog",
    "persist",
]
