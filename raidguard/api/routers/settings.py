"""
RaidGuard - Settings Router
===========================

Read and partially update the live detection settings.
"""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from raidguard.api.dependencies import get_engine
from raidguard.api.models.settings import SettingsPatch


router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("")
async def get_settings(engine: Any = Depends(get_engine)) -> JSONResponse:
    """Current settings snapshot."""
    return JSONResponse({
        "success": True,
        "data": engine.get_settings().to_dict(),
    })


@router.patch("")
async def update_settings(
    body: SettingsPatch,
    engine: Any = Depends(get_engine),
) -> JSONResponse:
    """
    Merge a partial update into the current settings.

    Values that fail sanitization (non-positive thresholds or windows)
    fall back to their defaults; the response shows what was applied.
    """
    updated = await engine.update_settings(body.to_patch())
    return JSONResponse({
        "success": True,
        "data": updated.to_dict(),
    })


__all__ = ["router"]
