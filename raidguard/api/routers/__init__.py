"""
RaidGuard - API Routers
=======================

Route handlers for the API.
"""

from .health import router as health_router
from .detections import router as detections_router
from .settings import router as settings_router
from .suspicion import router as suspicion_router

__all__ = [
    "health_router",
    "detections_router",
    "settings_router",
    "suspicion_router",
]
