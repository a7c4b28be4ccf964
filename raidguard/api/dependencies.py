"""
RaidGuard - API Dependencies
============================

FastAPI dependency injection utilities.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from raidguard.services.detection import DetectionEngine

from raidguard.api.errors import APIError, ErrorCode


# =============================================================================
# Engine Reference
# =============================================================================

_engine_instance: Optional["DetectionEngine"] = None


def set_engine(engine: Optional["DetectionEngine"]) -> None:
    """Set the engine instance for dependency injection."""
    global _engine_instance
    _engine_instance = engine


def get_engine() -> "DetectionEngine":
    """Get the engine instance."""
    if _engine_instance is None:
        raise APIError(ErrorCode.ENGINE_NOT_INITIALIZED)
    return _engine_instance


__all__ = ["set_engine", "get_engine"]
