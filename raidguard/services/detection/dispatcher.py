"""
Action Dispatcher
=================

Maps a detection and the current auto-moderation settings to moderation
actions, and runs them without holding up ingestion.

DESIGN:
    plan_actions() is a pure decision step. dispatch() schedules each
    planned action as its own safe background task bounded by a timeout.
    A failure or timeout is logged with the detection id and counted;
    it is never retried and never touches windows, scores or the log.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Protocol

from raidguard.core.constants import ACTION_TIMEOUT, RAID_KICK_CAP
from raidguard.core.logger import logger
from raidguard.utils.async_utils import create_safe_task
from raidguard.utils.metrics import ACTIONS_FAILED, ACTIONS_SUCCEEDED, MetricsCollector

from .constants import (
    DELETE_MESSAGE_SCORE,
    MUTE_ACTOR_SCORE,
    PERSISTENT_OFFENDER_SUSPICION,
    RAID_KICK_SCORE,
)
from .models import Detection, DetectionKind
from .settings import Settings


# =============================================================================
# Actuator Interface
# =============================================================================

class ModerationActuator(Protocol):
    """
    Executes moderation actions on the chat platform.

    Each call may raise or return False to signal failure.
    """

    async def delete_message(self, scope_id: int, channel_id: Optional[int], message_id: Optional[int]) -> Any:
        ...

    async def mute_actor(self, scope_id: int, actor_id: int, reason: str) -> Any:
        ...

    async def kick_actor(self, scope_id: int, actor_id: int, reason: str) -> Any:
        ...

    async def ban_actor(self, scope_id: int, actor_id: int, reason: str) -> Any:
        ...


class ActionFailedError(Exception):
    """Raised when an actuator reports failure without raising."""
    pass


# =============================================================================
# Planned Actions
# =============================================================================

class ActionKind(str, Enum):
    DELETE_MESSAGE = "delete_message"
    MUTE = "mute"
    KICK = "kick"
    BAN = "ban"


@dataclass(frozen=True)
class PlannedAction:
    """One actuator call derived from a detection."""
    kind: ActionKind
    scope_id: int
    actor_id: Optional[int] = None
    channel_id: Optional[int] = None
    message_id: Optional[int] = None
    reason: str = ""


def plan_actions(
    detection: Detection,
    settings: Settings,
    suspicion: float = 0.0,
    kick_cap: int = RAID_KICK_CAP,
) -> List[PlannedAction]:
    """
    Decide which actions a detection warrants.

    Args:
        detection: The emitted detection.
        settings: Snapshot whose auto-moderation toggles apply.
        suspicion: The actor's suspicion after this detection.
        kick_cap: Maximum kicks for one raid burst.
    """
    am = settings.auto_moderation
    if not am.enabled:
        return []

    actions: List[PlannedAction] = []
    score = detection.composite_score

    if detection.kind is DetectionKind.SPAM:
        threats = ", ".join(sorted(detection.threat_kinds)) or "high spam score"
        reason = f"Automatic spam detection ({threats})"

        if am.delete_messages and score > DELETE_MESSAGE_SCORE and detection.message_id is not None:
            actions.append(PlannedAction(
                kind=ActionKind.DELETE_MESSAGE,
                scope_id=detection.scope_id,
                actor_id=detection.actor_id,
                channel_id=detection.channel_id,
                message_id=detection.message_id,
                reason=reason,
            ))
        if am.mute_spammers and score > MUTE_ACTOR_SCORE:
            actions.append(PlannedAction(ActionKind.MUTE, detection.scope_id, detection.actor_id, reason=reason))
        if am.ban_persistent_offenders and suspicion >= PERSISTENT_OFFENDER_SUSPICION:
            actions.append(PlannedAction(
                ActionKind.BAN, detection.scope_id, detection.actor_id,
                reason="Persistent spam offender",
            ))

    elif detection.kind is DetectionKind.RAID:
        if am.kick_raiders and score > RAID_KICK_SCORE:
            reason = f"Raid detected (suspicion {score:.2f})"
            for actor_id in detection.participants[:max(kick_cap, 0)]:
                actions.append(PlannedAction(ActionKind.KICK, detection.scope_id, actor_id, reason=reason))

    return actions


# =============================================================================
# Dispatcher
# =============================================================================

class ActionDispatcher:
    """Runs planned actions against the actuator as fire-and-forget tasks."""

    def __init__(
        self,
        actuator: Optional[ModerationActuator],
        metrics: Optional[MetricsCollector] = None,
        timeout: float = ACTION_TIMEOUT,
        kick_cap: int = RAID_KICK_CAP,
    ) -> None:
        self.actuator = actuator
        self.metrics = metrics or MetricsCollector()
        self.timeout = timeout
        self.kick_cap = kick_cap
        self._pending: set = set()

    def dispatch(
        self,
        detection: Detection,
        settings: Settings,
        suspicion: float = 0.0,
    ) -> List[asyncio.Task]:
        """
        Schedule every action the detection warrants.

        Returns immediately; the returned tasks are only useful to tests
        and shutdown.
        """
        if self.actuator is None:
            return []

        tasks = []
        for action in plan_actions(detection, settings, suspicion, self.kick_cap):
            task = create_safe_task(self._execute(action, detection), f"Action {action.kind.value}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            tasks.append(task)
        return tasks

    def _call(self, action: PlannedAction):
        actuator = self.actuator
        if action.kind is ActionKind.DELETE_MESSAGE:
            return actuator.delete_message(action.scope_id, action.channel_id, action.message_id)
        if action.kind is ActionKind.MUTE:
            return actuator.mute_actor(action.scope_id, action.actor_id, action.reason)
        if action.kind is ActionKind.KICK:
            return actuator.kick_actor(action.scope_id, action.actor_id, action.reason)
        return actuator.ban_actor(action.scope_id, action.actor_id, action.reason)

    async def _execute(self, action: PlannedAction, detection: Detection) -> bool:
        try:
            result = await asyncio.wait_for(self._call(action), timeout=self.timeout)
            if result is False:
                raise ActionFailedError("Actuator reported failure")
        except asyncio.TimeoutError:
            self._record_failure(action, detection, f"Timed out after {self.timeout}s", "TimeoutError")
            return False
        except Exception as e:
            self._record_failure(action, detection, str(e)[:100], type(e).__name__)
            return False

        self.metrics.increment(ACTIONS_SUCCEEDED)
        logger.tree("Moderation Action Applied", [
            ("Action", action.kind.value),
            ("Detection", detection.id),
            ("Guild", str(action.scope_id)),
            ("Target", str(action.actor_id)),
        ], emoji="🔨")
        return True

    def _record_failure(self, action: PlannedAction, detection: Detection, error: str, error_type: str) -> None:
        self.metrics.increment(ACTIONS_FAILED)
        logger.warning("Moderation Action Failed", [
            ("Action", action.kind.value),
            ("Detection", detection.id),
            ("Target", str(action.actor_id)),
            ("Error Type", error_type),
            ("Error", error),
        ])

    async def drain(self) -> None:
        """Wait for in-flight actions (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = [
    "ModerationActuator",
    "ActionFailedError",
    "ActionKind",
    "PlannedAction",
    "plan_actions",
    "ActionDispatcher",
]
