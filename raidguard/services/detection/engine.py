"""
Detection Engine
================

Ingestion pipeline, background schedules and the query surface.

DESIGN:
    A message event flows through: whitelist -> window updates ->
    detectors -> composite score -> suspicion, log, alert, actions.
    A join event additionally feeds the raid analyzer.

    Each event reads `settings.current` exactly once, so one event is
    always evaluated against one snapshot even if an update lands
    mid-evaluation.

    Windowed detectors run concurrently, each under its own window key
    lock. Moderation actions and alerts are scheduled as background
    tasks, so ingest() returns as soon as the in-memory state is updated.

    Background work (suspicion decay, idle window sweep, raid window
    prune) runs as three independent PeriodicTasks started by start()
    and cancelled by stop(). Tests call the *_tick() methods directly
    with a ManualClock instead of waiting.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional

from raidguard.core.clock import Clock, SystemClock
from raidguard.core.constants import (
    ACTION_TIMEOUT,
    CLEANUP_INTERVAL,
    DECAY_INTERVAL,
    DECAY_STEP,
    RAID_KICK_CAP,
)
from raidguard.core.logger import logger
from raidguard.utils.async_utils import PeriodicTask, create_safe_task
from raidguard.utils.metrics import (
    ALERTS_FAILED,
    DETECTIONS_RAID,
    DETECTIONS_SPAM,
    INGESTION_ACCEPTED,
    INGESTION_EXEMPT,
    INGESTION_MALFORMED,
    PERSISTENCE_FAILED,
    MetricsCollector,
)

from .alerts import AlertSink
from .detectors import (
    detect_identical_content,
    detect_link_spam,
    detect_mention_spam,
    detect_rapid_messages,
    detect_suspicious_content,
    empty_result,
    entries_for,
)
from .dispatcher import ActionDispatcher, ModerationActuator
from .log import DetectionLog, DetectionSink, persist
from .models import (
    Detection,
    DetectionKind,
    DetectorResult,
    DetectorType,
    Event,
    EventKind,
    MalformedEventError,
    WindowKey,
    new_detection_id,
)
from .raid import RaidAssessment, RaidClusterAnalyzer
from .scoring import combine
from .settings import Settings, SettingsManager
from .suspicion import SuspicionTracker
from .whitelist import is_event_exempt
from .windows import SlidingWindowStore


class DetectionEngine:
    """
    The abuse and raid detection engine.

    Attributes:
        settings: Manager owning the current settings snapshot.
        windows: Sliding window store for message detectors.
        suspicion: Per-actor suspicion tracker.
        raids: Raid cluster analyzer.
        log: Bounded detection history.
        dispatcher: Moderation action dispatcher.
        metrics: Ingestion counters and timings.
    """

    def __init__(
        self,
        settings: SettingsManager,
        actuator: Optional[ModerationActuator] = None,
        alert_sink: Optional[AlertSink] = None,
        detection_sink: Optional[DetectionSink] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[MetricsCollector] = None,
        decay_interval: float = DECAY_INTERVAL,
        decay_step: float = DECAY_STEP,
        cleanup_interval: float = CLEANUP_INTERVAL,
        action_timeout: float = ACTION_TIMEOUT,
        raid_kick_cap: int = RAID_KICK_CAP,
    ) -> None:
        self.clock = clock or SystemClock()
        self.settings = settings
        self.metrics = metrics or MetricsCollector()
        self.windows = SlidingWindowStore(self.clock)
        self.suspicion = SuspicionTracker(self.clock, decay_step)
        self.raids = RaidClusterAnalyzer(self.clock)
        self.log = DetectionLog(self.clock)
        self.dispatcher = ActionDispatcher(actuator, self.metrics, action_timeout, raid_kick_cap)
        self.alert_sink = alert_sink
        self.detection_sink = detection_sink

        self._tasks = [
            PeriodicTask("Suspicion Decay", decay_interval, self.decay_tick),
            PeriodicTask("Window Cleanup", cleanup_interval, self.cleanup_tick),
            PeriodicTask("Raid Window Prune", cleanup_interval, self.raid_prune_tick),
        ]
        self._background: set = set()

        settings.on_update(self._on_settings_update)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return any(task.is_running for task in self._tasks)

    async def start(self) -> None:
        """Start the background schedules."""
        for task in self._tasks:
            task.start()

        current = self.settings.current
        logger.tree("Detection Engine Started", [
            ("Enabled", str(current.enabled)),
            ("Sensitivity", current.sensitivity),
            ("Auto-Moderation", "On" if current.auto_moderation.enabled else "Off"),
            ("Schedules", ", ".join(f"{t.name} {t.interval}s" for t in self._tasks)),
        ], emoji="🛡️")

    async def stop(self) -> None:
        """Cancel schedules and wait for in-flight actions and alerts."""
        for task in self._tasks:
            await task.stop()
        await self.dispatcher.drain()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        logger.tree("Detection Engine Stopped", [
            ("Detections Logged", str(self.log.size())),
            ("Tracked Actors", str(len(self.suspicion))),
        ], emoji="🛑")

    def _on_settings_update(self, settings: Settings) -> None:
        logger.info("Detection Settings Applied", [
            ("Rapid", f"{settings.threshold(DetectorType.RAPID_MESSAGES)} / {settings.window_ms(DetectorType.RAPID_MESSAGES)}ms"),
            ("Mass Join", f"{settings.threshold(DetectorType.MASS_JOIN)} / {settings.window_ms(DetectorType.MASS_JOIN)}ms"),
            ("Whitelisted Users", str(len(settings.whitelist.users))),
        ])

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def ingest_raw(self, data: Mapping[str, Any]) -> List[Detection]:
        """
        Ingest an untyped event record.

        Malformed records are dropped and counted, never raised.
        """
        try:
            event = Event.from_dict(data)
        except MalformedEventError as e:
            self.metrics.increment(INGESTION_MALFORMED)
            logger.debug("Malformed Event Dropped", [("Error", str(e)[:80])])
            return []
        return await self.ingest(event)

    async def ingest(self, event: Event) -> List[Detection]:
        """
        Evaluate one event.

        Returns:
            Detections emitted for this event (empty for most events).
        """
        settings = self.settings.current
        if not settings.enabled:
            return []

        if is_event_exempt(settings, event):
            self.metrics.increment(INGESTION_EXEMPT)
            return []

        self.metrics.increment(INGESTION_ACCEPTED)

        with self.metrics.timer("engine.ingest"):
            if event.kind is EventKind.JOIN:
                detection = await self._evaluate_join(event, settings)
            else:
                detection = await self._evaluate_message(event, settings)

        return [detection] if detection else []

    # =========================================================================
    # Message Evaluation
    # =========================================================================

    async def _run_windowed(
        self,
        detector: DetectorType,
        event: Event,
        settings: Settings,
    ) -> DetectorResult:
        """Update one detector's window and score it."""
        entries = entries_for(detector, event)
        if not entries and detector is not DetectorType.RAPID_MESSAGES:
            return empty_result(detector)

        key = WindowKey(detector, event.scope_id, event.actor_id)
        window_ms = settings.window_ms(detector)
        threshold = settings.threshold(detector)
        recent = await self.windows.update(key, entries, window_ms)

        if detector is DetectorType.RAPID_MESSAGES:
            return detect_rapid_messages(recent, threshold, window_ms)
        if detector is DetectorType.IDENTICAL_CONTENT:
            return detect_identical_content(recent, threshold)
        if detector is DetectorType.LINK_SPAM:
            return detect_link_spam(recent, threshold)
        return detect_mention_spam(recent, threshold)

    async def _evaluate_message(self, event: Event, settings: Settings) -> Optional[Detection]:
        results = list(await asyncio.gather(
            self._run_windowed(DetectorType.RAPID_MESSAGES, event, settings),
            self._run_windowed(DetectorType.IDENTICAL_CONTENT, event, settings),
            self._run_windowed(DetectorType.LINK_SPAM, event, settings),
            self._run_windowed(DetectorType.MENTION_SPAM, event, settings),
        ))
        results.append(detect_suspicious_content(event.content))

        composite = combine(results)
        suspicion = self.suspicion.update(event.scope_id, event.actor_id, composite.score)

        if not composite.should_emit:
            return None

        detection = Detection(
            id=new_detection_id(),
            kind=DetectionKind.SPAM,
            scope_id=event.scope_id,
            timestamp=self.clock.now_ms(),
            composite_score=composite.score,
            threat_kinds=composite.threat_kinds,
            actor_id=event.actor_id,
            channel_id=event.channel_id,
            message_id=event.message_id,
            details={
                "results": [r.to_dict() for r in results],
                "suspicion": round(suspicion, 4),
            },
        )
        self.metrics.increment(DETECTIONS_SPAM)
        self._emit(detection, settings, suspicion)
        return detection

    # =========================================================================
    # Join Evaluation
    # =========================================================================

    async def _evaluate_join(self, event: Event, settings: Settings) -> Optional[Detection]:
        assessment = await self.raids.record_join(
            event,
            threshold=settings.threshold(DetectorType.MASS_JOIN),
            window_ms=settings.window_ms(DetectorType.MASS_JOIN),
        )
        if assessment is None:
            return None

        detection = self._raid_detection(assessment)
        self.metrics.increment(DETECTIONS_RAID)
        self._emit(detection, settings)
        return detection

    def _raid_detection(self, assessment: RaidAssessment) -> Detection:
        return Detection(
            id=new_detection_id(),
            kind=DetectionKind.RAID,
            scope_id=assessment.scope_id,
            timestamp=self.clock.now_ms(),
            composite_score=assessment.score,
            threat_kinds=frozenset({DetectorType.MASS_JOIN.value}),
            details={
                "joinCount": assessment.join_count,
                "timeWindow": assessment.window_ms,
                "joins": [j.to_dict() for j in assessment.joins],
                "factors": {k: round(v, 4) for k, v in assessment.factors.items()},
            },
        )

    # =========================================================================
    # Emission
    # =========================================================================

    def _emit(self, detection: Detection, settings: Settings, suspicion: float = 0.0) -> None:
        """Log, persist, alert and dispatch. Only the log append is synchronous."""
        self.log.append(detection)

        if self.detection_sink is not None:
            self._spawn(self._persist(detection), "Detection Persist")
        if self.alert_sink is not None:
            self._spawn(self._alert(detection), "Detection Alert")

        self.dispatcher.dispatch(detection, settings, suspicion)

    def _spawn(self, coro, name: str) -> None:
        task = create_safe_task(coro, name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _persist(self, detection: Detection) -> None:
        if not await persist(self.detection_sink, detection):
            self.metrics.increment(PERSISTENCE_FAILED)

    async def _alert(self, detection: Detection) -> None:
        try:
            await self.alert_sink.send(detection)
        except Exception as e:
            self.metrics.increment(ALERTS_FAILED)
            logger.warning("Alert Delivery Failed", [
                ("Detection", detection.id),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])

    # =========================================================================
    # Background Ticks
    # =========================================================================

    async def decay_tick(self) -> int:
        return await self.suspicion.decay_tick()

    async def cleanup_tick(self) -> int:
        removed = self.windows.sweep()
        if removed:
            logger.debug("Idle Windows Swept", [
                ("Removed", str(removed)),
                ("Remaining", str(len(self.windows))),
            ])
        return removed

    async def raid_prune_tick(self) -> int:
        threshold = self.settings.current.threshold(DetectorType.MASS_JOIN)
        return await self.raids.prune(threshold)

    # =========================================================================
    # Query API
    # =========================================================================

    def get_detections(
        self,
        scope_id: Optional[int] = None,
        kind: Optional[DetectionKind] = None,
        limit: int = 50,
        since_ms: Optional[int] = None,
        until_ms: Optional[int] = None,
    ) -> List[Detection]:
        return self.log.query(scope_id=scope_id, kind=kind, limit=limit, since_ms=since_ms, until_ms=until_ms)

    def get_statistics(self, scope_id: Optional[int] = None, days: int = 7) -> Dict[str, Any]:
        return self.log.statistics(scope_id=scope_id, days=days)

    def get_settings(self) -> Settings:
        return self.settings.current

    async def update_settings(self, patch: Mapping[str, Any]) -> Settings:
        return await self.settings.update(patch)

    def get_suspicion(self, scope_id: int, actor_id: int) -> float:
        return self.suspicion.get(scope_id, actor_id)

    def get_status(self) -> Dict[str, Any]:
        """Engine health counters."""
        return {
            "running": self.is_running,
            "windows": len(self.windows),
            "trackedActors": len(self.suspicion),
            "detections": {
                "spam": self.log.size(DetectionKind.SPAM),
                "raid": self.log.size(DetectionKind.RAID),
            },
            "metrics": self.metrics.get_summary(),
        }


__all__ = [
    "DetectionEngine",
]
