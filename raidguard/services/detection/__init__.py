"""
RaidGuard - Detection Package
=============================

Sliding-window spam detectors, raid cluster analysis, suspicion
tracking and the DetectionEngine that composes them.

Structure:
    models.py: Events, detector results and detection records
    constants.py: Default thresholds, windows, patterns and weights
    settings.py: Settings snapshots, sanitization and stores
    whitelist.py: Exemption checks
    windows.py: Keyed sliding window store
    detectors.py: Pure detector functions
    scoring.py: Composite spam score
    suspicion.py: Decaying per-actor suspicion
    raid.py: Mass-join burst analysis
    log.py: Detection log, statistics and persistence sink
    alerts.py: Alert sinks
    dispatcher.py: Moderation action planning and dispatch
    engine.py: The engine facade
"""

from .alerts import CompositeAlertSink, LoggingAlertSink, WebhookAlertSink
from .dispatcher import ActionDispatcher, ModerationActuator, plan_actions
from .engine import DetectionEngine
from .log import DetectionLog, JsonDetectionSink
from .models import (
    Detection,
    DetectionKind,
    DetectorResult,
    DetectorType,
    Event,
    EventKind,
    MalformedEventError,
)
from .settings import (
    InMemorySettingsStore,
    JsonSettingsStore,
    Settings,
    SettingsManager,
    SettingsStoreError,
)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Engine
    "DetectionEngine",
    # Models
    "Detection",
    "DetectionKind",
    "DetectorResult",
    "DetectorType",
    "Event",
    "EventKind",
    "MalformedEventError",
    # Settings
    "InMemorySettingsStore",
    "JsonSettingsStore",
    "Settings",
    "SettingsManager",
    "SettingsStoreError",
    # Sinks
    "CompositeAlertSink",
    "LoggingAlertSink",
    "WebhookAlertSink",
    "DetectionLog",
    "JsonDetectionSink",
    # Actions
    "ActionDispatcher",
    "ModerationActuator",
    "plan_actions",
]
