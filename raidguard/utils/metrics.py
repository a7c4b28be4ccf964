"""
RaidGuard - Engine Metrics
==========================

Counters and rolling timings for the ingestion path.

DESIGN:
    Counters track outcomes that are otherwise invisible: malformed
    events that were dropped, failed moderation actions, failed
    persistence writes. Timings use a rolling window (deque) per metric
    so memory stays bounded under unbounded event traffic.
"""

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Deque, Dict, Generator, Optional

from raidguard.core.logger import logger


# =============================================================================
# Constants
# =============================================================================

DEFAULT_WINDOW_SIZE = 100
"""Number of samples to keep per metric."""

SLOW_THRESHOLD_MS = 250
"""Ingestion steps slower than this (ms) are logged."""

# Counter names
INGESTION_MALFORMED = "ingestion.malformed"
INGESTION_ACCEPTED = "ingestion.accepted"
INGESTION_EXEMPT = "ingestion.exempt"
DETECTIONS_SPAM = "detections.spam"
DETECTIONS_RAID = "detections.raid"
ACTIONS_SUCCEEDED = "actions.succeeded"
ACTIONS_FAILED = "actions.failed"
PERSISTENCE_FAILED = "persistence.failed"
ALERTS_FAILED = "alerts.failed"


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class MetricStats:
    """Aggregated statistics for a timing metric."""
    name: str
    count: int
    avg_ms: float
    max_ms: float
    p95_ms: float


# =============================================================================
# Metrics Collector
# =============================================================================

class MetricsCollector:
    """
    Collects counters and timing samples.

    Attributes:
        metrics: Metric name to rolling deque of durations (ms).
        window_size: Maximum samples per metric.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE) -> None:
        self.metrics: Dict[str, Deque[float]] = {}
        self.window_size = window_size
        self._counters: Dict[str, int] = {}
        self._start_time = time.monotonic()

    def record(self, name: str, duration_ms: float) -> None:
        """Record a timing sample."""
        if name not in self.metrics:
            self.metrics[name] = deque(maxlen=self.window_size)
        self.metrics[name].append(duration_ms)

        if duration_ms > SLOW_THRESHOLD_MS:
            logger.warning("Slow Operation Detected", [
                ("Metric", name),
                ("Duration", f"{duration_ms:.0f}ms"),
                ("Threshold", f"{SLOW_THRESHOLD_MS}ms"),
            ])

    def increment(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        self._counters[name] = self._counters.get(name, 0) + amount

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        return self._counters.get(name, 0)

    def get_stats(self, name: str) -> Optional[MetricStats]:
        """Calculate statistics for a timing metric, None if no samples."""
        samples = self.metrics.get(name)
        if not samples:
            return None

        values = sorted(samples)
        count = len(values)
        p95_idx = min(int(count * 0.95), count - 1)

        return MetricStats(
            name=name,
            count=count,
            avg_ms=sum(values) / count,
            max_ms=values[-1],
            p95_ms=values[p95_idx],
        )

    def get_summary(self) -> Dict[str, Any]:
        """Uptime, counters and timing stats as a plain dict."""
        timings = {}
        for name in self.metrics:
            stats = self.get_stats(name)
            if stats is not None:
                timings[name] = {
                    "count": stats.count,
                    "avg_ms": round(stats.avg_ms, 2),
                    "p95_ms": round(stats.p95_ms, 2),
                    "max_ms": round(stats.max_ms, 2),
                }
        return {
            "uptime_seconds": round(time.monotonic() - self._start_time, 1),
            "counters": dict(self._counters),
            "timings": timings,
        }

    def clear(self) -> None:
        """Clear all metrics and counters."""
        self.metrics.clear()
        self._counters.clear()

    @contextmanager
    def timer(self, name: str) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Example:
            with metrics.timer("engine.ingest"):
                ...
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, (time.perf_counter() - start) * 1000)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "MetricsCollector",
    "MetricStats",
    "SLOW_THRESHOLD_MS",
    "INGESTION_MALFORMED",
    "INGESTION_ACCEPTED",
    "INGESTION_EXEMPT",
    "DETECTIONS_SPAM",
    "DETECTIONS_RAID",
    "ACTIONS_SUCCEEDED",
    "ACTIONS_FAILED",
    "PERSISTENCE_FAILED",
    "ALERTS_FAILED",
]
