"""
RaidGuard - Base API Models
===========================

Common response models.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field


# =============================================================================
# Generic Type Variables
# =============================================================================

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Base Response Models
# =============================================================================

class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class HealthData(BaseModel):
    """Health check payload."""

    status: str = "healthy"
    engine_running: bool = False
    windows: int = Field(0, ge=0, description="Live sliding windows")
    tracked_actors: int = Field(0, ge=0, description="Actors with non-zero suspicion")
    detections: Dict[str, int] = Field(default_factory=dict)
    counters: Dict[str, Any] = Field(default_factory=dict)


__all__ = ["APIResponse", "HealthData"]
