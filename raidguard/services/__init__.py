"""
RaidGuard - Services Package
============================

DESIGN:
    Services are standalone async-compatible components. They handle
    their own error cases and never let a failing collaborator (Discord,
    a webhook, the settings file) stop event ingestion.

Available Services:
    DetectionEngine: Spam and raid detection with auto-moderation
"""

from .detection import DetectionEngine


__all__ = [
    "DetectionEngine",
]
