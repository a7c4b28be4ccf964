"""
RaidGuard - Settings API Models
===============================

Partial-update body for PATCH /settings.

Every field is optional. Only fields present in the request body are
forwarded to the engine, using the camelCase settings-file names.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _PatchModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class AutoModerationPatch(_PatchModel):
    enabled: Optional[bool] = None
    delete_messages: Optional[bool] = Field(None, alias="deleteMessages")
    mute_spammers: Optional[bool] = Field(None, alias="muteSpammers")
    kick_raiders: Optional[bool] = Field(None, alias="kickRaiders")
    ban_persistent_offenders: Optional[bool] = Field(None, alias="banPersistentOffenders")


class ThresholdsPatch(_PatchModel):
    rapid_messages: Optional[int] = Field(None, alias="rapidMessages")
    identical_content: Optional[int] = Field(None, alias="identicalContent")
    mass_join: Optional[int] = Field(None, alias="massJoin")
    link_spam: Optional[int] = Field(None, alias="linkSpam")
    mention_spam: Optional[int] = Field(None, alias="mentionSpam")


class TimeWindowsPatch(_PatchModel):
    rapid_messages: Optional[int] = Field(None, alias="rapidMessages", description="Window in ms")
    identical_content: Optional[int] = Field(None, alias="identicalContent", description="Window in ms")
    mass_join: Optional[int] = Field(None, alias="massJoin", description="Window in ms")
    link_spam: Optional[int] = Field(None, alias="linkSpam", description="Window in ms")
    mention_spam: Optional[int] = Field(None, alias="mentionSpam", description="Window in ms")


class WhitelistPatch(_PatchModel):
    users: Optional[List[int]] = None
    roles: Optional[List[int]] = None
    channels: Optional[List[int]] = None


class SettingsPatch(_PatchModel):
    """Request body for PATCH /settings."""

    enabled: Optional[bool] = None
    sensitivity: Optional[Literal["low", "medium", "high"]] = None
    auto_moderation: Optional[AutoModerationPatch] = Field(None, alias="autoModeration")
    thresholds: Optional[ThresholdsPatch] = None
    time_windows: Optional[TimeWindowsPatch] = Field(None, alias="timeWindows")
    whitelist: Optional[WhitelistPatch] = None

    def to_patch(self) -> Dict[str, Any]:
        """Only the fields the client sent, keyed by their settings-file names."""
        return self.model_dump(exclude_unset=True, by_alias=True)


__all__ = [
    "AutoModerationPatch",
    "ThresholdsPatch",
    "TimeWindowsPatch",
    "WhitelistPatch",
    "SettingsPatch",
]
