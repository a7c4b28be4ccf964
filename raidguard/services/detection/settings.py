"""
Detection Settings
==================

Immutable settings snapshots, sanitization, and the stores behind them.

DESIGN:
    Settings are a frozen dataclass tree. An update never mutates the
    current snapshot: the manager builds a new sanitized snapshot and
    swaps the reference, so a reader holding `manager.current` always
    sees one consistent object.

    Misconfiguration is repaired, not rejected. A negative threshold or a
    zero window falls back to its default with a warning so detection can
    never silently switch itself off.

    The wire/JSON format uses the camelCase keys of the settings file
    (autoModeration, rapidMessages, ...).
"""

import asyncio
import copy
import json
import math
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Protocol

from raidguard.core.logger import logger

from .constants import (
    DEFAULT_SENSITIVITY,
    DEFAULT_THRESHOLDS,
    DEFAULT_WINDOWS_MS,
    SENSITIVITY_MULTIPLIERS,
)
from .models import DetectorType, id_set


# =============================================================================
# Wire Names
# =============================================================================

WIRE_NAMES: Dict[DetectorType, str] = {
    DetectorType.RAPID_MESSAGES: "rapidMessages",
    DetectorType.IDENTICAL_CONTENT: "identicalContent",
    DetectorType.MASS_JOIN: "massJoin",
    DetectorType.LINK_SPAM: "linkSpam",
    DetectorType.MENTION_SPAM: "mentionSpam",
}


class SettingsStoreError(Exception):
    """Raised when a settings store cannot read or write."""
    pass


# =============================================================================
# Snapshot Dataclasses
# =============================================================================

@dataclass(frozen=True)
class AutoModeration:
    """Per-action toggles. Nothing fires unless `enabled` is set."""
    enabled: bool = False
    delete_messages: bool = True
    mute_spammers: bool = True
    kick_raiders: bool = False
    ban_persistent_offenders: bool = False


@dataclass(frozen=True)
class Whitelist:
    """Exempt user, role and channel ids."""
    users: FrozenSet[int] = frozenset()
    roles: FrozenSet[int] = frozenset()
    channels: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class Settings:
    """A complete, sanitized settings snapshot."""
    enabled: bool = True
    sensitivity: str = DEFAULT_SENSITIVITY
    auto_moderation: AutoModeration = field(default_factory=AutoModeration)
    thresholds: Mapping[DetectorType, int] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    time_windows: Mapping[DetectorType, int] = field(default_factory=lambda: dict(DEFAULT_WINDOWS_MS))
    whitelist: Whitelist = field(default_factory=Whitelist)

    def threshold(self, detector: DetectorType) -> int:
        """Threshold after the sensitivity multiplier, never below 1."""
        base = self.thresholds.get(detector, DEFAULT_THRESHOLDS[detector])
        multiplier = SENSITIVITY_MULTIPLIERS.get(self.sensitivity, 1.0)
        return max(1, math.ceil(base * multiplier))

    def window_ms(self, detector: DetectorType) -> int:
        return self.time_windows.get(detector, DEFAULT_WINDOWS_MS[detector])

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase settings-file format."""
        am = self.auto_moderation
        return {
            "enabled": self.enabled,
            "sensitivity": self.sensitivity,
            "autoModeration": {
                "enabled": am.enabled,
                "deleteMessages": am.delete_messages,
                "muteSpammers": am.mute_spammers,
                "kickRaiders": am.kick_raiders,
                "banPersistentOffenders": am.ban_persistent_offenders,
            },
            "thresholds": {WIRE_NAMES[d]: v for d, v in self.thresholds.items()},
            "timeWindows": {WIRE_NAMES[d]: v for d, v in self.time_windows.items()},
            "whitelist": {
                "users": sorted(self.whitelist.users),
                "roles": sorted(self.whitelist.roles),
                "channels": sorted(self.whitelist.channels),
            },
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Settings":
        """Build a sanitized snapshot from file/API data."""
        return sanitize_settings(data)


# =============================================================================
# Sanitization
# =============================================================================

def _positive_int(value: Any, default: int, name: str) -> int:
    """Accept positive integers, otherwise warn and fall back."""
    if isinstance(value, bool):
        value = None
    if isinstance(value, (int, float)) and value > 0 and float(value).is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        return int(value)
    if value is not None:
        logger.warning("Settings Value Sanitized", [
            ("Setting", name),
            ("Invalid", repr(value)[:40]),
            ("Using", str(default)),
        ])
    return default


def _bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def sanitize_settings(data: Optional[Mapping[str, Any]]) -> Settings:
    """
    Turn arbitrary settings data into a valid snapshot.

    Missing keys take defaults. Non-positive or non-numeric thresholds
    and windows take defaults with a warning. Unknown sensitivity levels
    fall back to medium.
    """
    data = data if isinstance(data, Mapping) else {}

    sensitivity = data.get("sensitivity", DEFAULT_SENSITIVITY)
    if sensitivity not in SENSITIVITY_MULTIPLIERS:
        logger.warning("Settings Value Sanitized", [
            ("Setting", "sensitivity"),
            ("Invalid", repr(sensitivity)[:40]),
            ("Using", DEFAULT_SENSITIVITY),
        ])
        sensitivity = DEFAULT_SENSITIVITY

    am = _section(data, "autoModeration")
    defaults = AutoModeration()
    auto_moderation = AutoModeration(
        enabled=_bool(am.get("enabled"), defaults.enabled),
        delete_messages=_bool(am.get("deleteMessages"), defaults.delete_messages),
        mute_spammers=_bool(am.get("muteSpammers"), defaults.mute_spammers),
        kick_raiders=_bool(am.get("kickRaiders"), defaults.kick_raiders),
        ban_persistent_offenders=_bool(am.get("banPersistentOffenders"), defaults.ban_persistent_offenders),
    )

    raw_thresholds = _section(data, "thresholds")
    raw_windows = _section(data, "timeWindows")
    thresholds = {
        d: _positive_int(raw_thresholds.get(name), DEFAULT_THRESHOLDS[d], f"thresholds.{name}")
        for d, name in WIRE_NAMES.items()
    }
    time_windows = {
        d: _positive_int(raw_windows.get(name), DEFAULT_WINDOWS_MS[d], f"timeWindows.{name}")
        for d, name in WIRE_NAMES.items()
    }

    wl = _section(data, "whitelist")
    whitelist = Whitelist(
        users=id_set(wl.get("users", [])),
        roles=id_set(wl.get("roles", [])),
        channels=id_set(wl.get("channels", [])),
    )

    return Settings(
        enabled=_bool(data.get("enabled"), True),
        sensitivity=sensitivity,
        auto_moderation=auto_moderation,
        thresholds=thresholds,
        time_windows=time_windows,
        whitelist=whitelist,
    )


def merge_patch(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge a partial update into settings data.

    Nested sections (thresholds, whitelist, ...) merge key by key; every
    other key is replaced outright.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_patch(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


# =============================================================================
# Stores
# =============================================================================

class SettingsStore(Protocol):
    """Persistence backend for settings snapshots."""

    def load(self) -> Settings:
        ...

    def save(self, settings: Settings) -> None:
        ...


class InMemorySettingsStore:
    """Keeps the last saved snapshot in memory."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._settings = sanitize_settings(initial)

    def load(self) -> Settings:
        return self._settings

    def save(self, settings: Settings) -> None:
        self._settings = settings


class JsonSettingsStore:
    """
    Settings kept under the "settings" key of a JSON file.

    Other top-level keys in the same file (for example the detection
    history written by JsonDetectionSink) are preserved on save.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_file(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise SettingsStoreError(f"Cannot read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def load(self) -> Settings:
        """Load settings, writing defaults if the file does not exist yet."""
        if not self.path.exists():
            settings = Settings()
            self.save(settings)
            return settings
        return sanitize_settings(self._read_file().get("settings"))

    def save(self, settings: Settings) -> None:
        with file_lock(self.path):
            try:
                data = self._read_file()
            except SettingsStoreError:
                data = {}
            data["settings"] = settings.to_dict()
            write_json_atomic(self.path, data)


_file_locks: Dict[Path, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def file_lock(path: Path) -> threading.Lock:
    """
    Process-wide lock for one JSON file.

    Held around every read-modify-write so JsonSettingsStore and
    JsonDetectionSink can keep their keys in the same file.
    """
    key = Path(path).resolve()
    with _file_locks_guard:
        return _file_locks.setdefault(key, threading.Lock())


def write_json_atomic(path: Path, data: Dict[str, Any]) -> None:
    """Write JSON through a temp file and rename it into place."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, path)
    except OSError as e:
        raise SettingsStoreError(f"Cannot write {path}: {e}") from e


# =============================================================================
# Settings Manager
# =============================================================================

SettingsCallback = Callable[[Settings], Any]


class SettingsManager:
    """
    Owns the current settings snapshot.

    Readers take `current` once per event and use that object for the
    whole evaluation. Updates are serialized by a lock, persisted, then
    swapped in and announced to on_update callbacks.
    """

    def __init__(self, store: SettingsStore) -> None:
        self._store = store
        self._callbacks: List[SettingsCallback] = []
        self._lock = asyncio.Lock()
        try:
            self._current = store.load()
        except SettingsStoreError as e:
            logger.warning("Settings Load Failed", [
                ("Error", str(e)[:100]),
                ("Using", "Defaults"),
            ])
            self._current = Settings()

    @property
    def current(self) -> Settings:
        return self._current

    def on_update(self, callback: SettingsCallback) -> None:
        """Register a callback that receives every new snapshot."""
        self._callbacks.append(callback)

    async def update(self, patch: Mapping[str, Any]) -> Settings:
        """
        Apply a partial update and return the new snapshot.

        A store write failure is logged and the new snapshot is still
        applied in memory.
        """
        async with self._lock:
            new_settings = sanitize_settings(merge_patch(self._current.to_dict(), patch))
            try:
                self._store.save(new_settings)
            except SettingsStoreError as e:
                logger.warning("Settings Save Failed", [
                    ("Error", str(e)[:100]),
                    ("State", "Applied in memory only"),
                ])
            self._current = new_settings

        logger.tree("Settings Updated", [
            ("Keys", ", ".join(sorted(patch.keys())) or "None"),
            ("Enabled", str(new_settings.enabled)),
            ("Sensitivity", new_settings.sensitivity),
            ("Auto-Moderation", "On" if new_settings.auto_moderation.enabled else "Off"),
        ], emoji="⚙️")

        for callback in list(self._callbacks):
            try:
                result = callback(new_settings)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Settings Callback Failed", [
                    ("Callback", getattr(callback, "__name__", repr(callback))[:40]),
                    ("Error", str(e)[:100]),
                ])

        return new_settings


__all__ = [
    "WIRE_NAMES",
    "SettingsStoreError",
    "AutoModeration",
    "Whitelist",
    "Settings",
    "sanitize_settings",
    "merge_patch",
    "SettingsStore",
    "InMemorySettingsStore",
    "JsonSettingsStore",
    "file_lock",
    "write_json_atomic",
    "SettingsManager",
]
