"""
RaidGuard - Health Router
=========================

Health check and engine status endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends

from raidguard.api.dependencies import get_engine
from raidguard.api.models.base import APIResponse, HealthData


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=APIResponse[HealthData])
async def health_check(engine: Any = Depends(get_engine)) -> APIResponse[HealthData]:
    """
    Engine health: liveness of the background schedules plus the
    ingestion counters.
    """
    status = engine.get_status()
    return APIResponse(
        success=True,
        data=HealthData(
            status="healthy" if status["running"] else "degraded",
            engine_running=status["running"],
            windows=status["windows"],
            tracked_actors=status["trackedActors"],
            detections=status["detections"],
            counters=status["metrics"]["counters"],
        ),
    )


__all__ = ["router"]
