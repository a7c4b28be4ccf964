"""
RaidGuard - Detections Router
=============================

Detection log queries and aggregate statistics.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from raidguard.core.logger import logger
from raidguard.api.dependencies import get_engine
from raidguard.api.errors import ErrorCode, bad_request
from raidguard.services.detection.models import DetectionKind


router = APIRouter(prefix="/detections", tags=["Detections"])


@router.get("")
async def list_detections(
    guild_id: Optional[int] = Query(None, description="Only detections in this guild"),
    type: Optional[str] = Query(None, description="spam or raid"),
    limit: int = Query(50, ge=1, le=500, description="Maximum detections returned"),
    since: Optional[int] = Query(None, ge=0, description="Only detections at or after this epoch ms"),
    until: Optional[int] = Query(None, ge=0, description="Only detections at or before this epoch ms"),
    engine: Any = Depends(get_engine),
) -> JSONResponse:
    """Recent detections, newest first."""
    kind = None
    if type is not None:
        try:
            kind = DetectionKind(type.lower())
        except ValueError:
            raise bad_request(
                ErrorCode.VALIDATION_INVALID_TYPE,
                details={"type": type, "allowed": [k.value for k in DetectionKind]},
            )

    detections = engine.get_detections(
        scope_id=guild_id,
        kind=kind,
        limit=limit,
        since_ms=since,
        until_ms=until,
    )

    logger.debug("Detections Queried", [
        ("Guild", str(guild_id) if guild_id else "All"),
        ("Type", kind.value if kind else "All"),
        ("Returned", str(len(detections))),
    ])

    return JSONResponse({
        "success": True,
        "data": [d.to_dict() for d in detections],
    })


@router.get("/statistics")
async def detection_statistics(
    guild_id: Optional[int] = Query(None, description="Only detections in this guild"),
    days: int = Query(7, ge=1, le=365, description="Trailing window in days"),
    engine: Any = Depends(get_engine),
) -> JSONResponse:
    """Totals, average spam score and the most common threats."""
    stats = engine.get_statistics(scope_id=guild_id, days=days)
    return JSONResponse({
        "success": True,
        "data": stats,
    })


__all__ = ["router"]
