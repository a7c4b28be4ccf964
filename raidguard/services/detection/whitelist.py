"""
Whitelist Filter
================

Exemption lookup against the current settings snapshot.
"""

from typing import Iterable, Optional

from .models import Event
from .settings import Settings


def is_exempt(
    settings: Settings,
    actor_id: int,
    channel_id: Optional[int] = None,
    role_ids: Iterable[int] = (),
) -> bool:
    """True when the actor, the channel, or any of the actor's roles is whitelisted."""
    whitelist = settings.whitelist
    if actor_id in whitelist.users:
        return True
    if channel_id is not None and channel_id in whitelist.channels:
        return True
    return any(role_id in whitelist.roles for role_id in role_ids)


def is_event_exempt(settings: Settings, event: Event) -> bool:
    return is_exempt(settings, event.actor_id, event.channel_id, event.role_ids)


__all__ = [
    "is_exempt",
    "is_event_exempt",
]
