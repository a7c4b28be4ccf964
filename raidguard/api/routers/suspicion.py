"""
RaidGuard - Suspicion Router
============================

Per-actor suspicion lookups.
"""

from typing import Any

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import JSONResponse

from raidguard.api.dependencies import get_engine


router = APIRouter(prefix="/suspicion", tags=["Suspicion"])


@router.get("/{user_id}")
async def get_suspicion(
    user_id: int = Path(..., description="Discord user ID"),
    guild_id: int = Query(..., description="Guild the score is tracked in"),
    engine: Any = Depends(get_engine),
) -> JSONResponse:
    """Current suspicion value in [0, 1]; 0 when the user is not tracked."""
    return JSONResponse({
        "success": True,
        "data": {
            "guildId": guild_id,
            "userId": user_id,
            "suspicion": round(engine.get_suspicion(guild_id, user_id), 4),
        },
    })


__all__ = ["router"]
