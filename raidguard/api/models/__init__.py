"""
RaidGuard - API Models
======================

Pydantic request and response models.
"""

from .base import APIResponse, HealthData
from .settings import (
    AutoModerationPatch,
    SettingsPatch,
    ThresholdsPatch,
    TimeWindowsPatch,
    WhitelistPatch,
)

__all__ = [
    "APIResponse",
    "HealthData",
    "AutoModerationPatch",
    "SettingsPatch",
    "ThresholdsPatch",
    "TimeWindowsPatch",
    "WhitelistPatch",
]
