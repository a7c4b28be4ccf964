"""
RaidGuard - Discord Client
==========================

Feeds guild messages and member joins into the DetectionEngine and
carries out the moderation actions it decides on.

DESIGN:
    The bot owns no detection logic. It converts discord.py objects into
    Events, hands them to the engine, and implements the actuator the
    engine's dispatcher calls back into.

    Event conversion is kept in plain functions so it can be exercised
    with mocked discord objects.
"""

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

import discord

from raidguard.core.config import Config, get_config
from raidguard.core.constants import MS_PER_SECOND, MUTE_DURATION
from raidguard.core.logger import logger
from raidguard.services.detection.models import Event, EventKind

if TYPE_CHECKING:
    from raidguard.api import APIService
    from raidguard.services.detection import DetectionEngine


# =============================================================================
# Event Conversion
# =============================================================================

def _to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * MS_PER_SECOND)


def _account_age_ms(user: discord.abc.User, now: datetime) -> Optional[int]:
    created = getattr(user, "created_at", None)
    if created is None:
        return None
    return max(int((now - created).total_seconds() * MS_PER_SECOND), 0)


def _role_ids(member) -> frozenset:
    roles = getattr(member, "roles", None) or []
    return frozenset(role.id for role in roles)


def message_to_event(message: discord.Message, now: Optional[datetime] = None) -> Optional[Event]:
    """
    Convert a guild message into a message Event.

    Returns:
        None for DMs and messages from bots or webhooks.
    """
    if message.guild is None or message.author.bot or message.webhook_id:
        return None

    now = now or datetime.now(timezone.utc)
    author = message.author

    return Event(
        kind=EventKind.MESSAGE,
        scope_id=message.guild.id,
        actor_id=author.id,
        timestamp=_to_ms(message.created_at),
        channel_id=message.channel.id,
        message_id=message.id,
        content=message.content or "",
        mention_count=len(message.mentions) + len(message.role_mentions),
        mentions_everyone=bool(message.mention_everyone),
        account_age_ms=_account_age_ms(author, now),
        has_avatar=author.avatar is not None,
        username=author.name,
        role_ids=_role_ids(author),
    )


def member_to_event(member: discord.Member, now: Optional[datetime] = None) -> Event:
    """Convert a member join into a join Event."""
    now = now or datetime.now(timezone.utc)
    joined = member.joined_at or now

    return Event(
        kind=EventKind.JOIN,
        scope_id=member.guild.id,
        actor_id=member.id,
        timestamp=_to_ms(joined),
        account_age_ms=_account_age_ms(member, now),
        has_avatar=member.avatar is not None,
        username=member.name,
        role_ids=_role_ids(member),
    )


# =============================================================================
# Moderation Actuator
# =============================================================================

class DiscordActuator:
    """
    Executes engine-decided moderation actions through a discord.Client.

    Each method returns False when the guild or target cannot be
    resolved; Discord API errors propagate to the dispatcher, which logs
    and counts them.
    """

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def delete_message(self, scope_id: int, channel_id: Optional[int], message_id: Optional[int]) -> bool:
        if channel_id is None or message_id is None:
            return False
        guild = self.client.get_guild(scope_id)
        channel = guild.get_channel_or_thread(channel_id) if guild else None
        if channel is None:
            return False

        await channel.get_partial_message(message_id).delete()
        return True

    async def mute_actor(self, scope_id: int, actor_id: int, reason: str) -> bool:
        guild = self.client.get_guild(scope_id)
        if guild is None:
            return False
        member = guild.get_member(actor_id)
        if member is None:
            try:
                member = await guild.fetch_member(actor_id)
            except discord.NotFound:
                return False

        await member.timeout(timedelta(seconds=MUTE_DURATION), reason=reason)
        return True

    async def kick_actor(self, scope_id: int, actor_id: int, reason: str) -> bool:
        guild = self.client.get_guild(scope_id)
        if guild is None:
            return False
        await guild.kick(discord.Object(id=actor_id), reason=reason)
        return True

    async def ban_actor(self, scope_id: int, actor_id: int, reason: str) -> bool:
        guild = self.client.get_guild(scope_id)
        if guild is None:
            return False
        await guild.ban(discord.Object(id=actor_id), reason=reason, delete_message_seconds=0)
        return True


# =============================================================================
# RaidGuardBot Class
# =============================================================================

class RaidGuardBot(discord.Client):
    """
    Discord client wired to a DetectionEngine.

    LIFECYCLE:
    1. setup_hook: start the engine schedules and the optional API
    2. on_message / on_member_join: feed the engine
    3. close: stop the API, then the engine (drains in-flight actions)
    """

    def __init__(
        self,
        engine: "DetectionEngine",
        api_service: Optional["APIService"] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.config = config or get_config()

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        super().__init__(intents=intents)

        self.engine = engine
        self.api_service = api_service
        self.start_time: datetime = datetime.now()
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Start background services before connecting."""
        await self.engine.start()
        if self.api_service:
            await self.api_service.start()

    async def on_ready(self) -> None:
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("RAIDGUARD ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
            ("API", "Running" if self.api_service and self.api_service.is_running else "Disabled"),
        ], emoji="🛡️")

    # =========================================================================
    # Event Feed
    # =========================================================================

    async def on_message(self, message: discord.Message) -> None:
        event = message_to_event(message)
        if event is None:
            return
        await self.engine.ingest(event)

    async def on_member_join(self, member: discord.Member) -> None:
        if member.bot:
            return
        await self.engine.ingest(member_to_event(member))

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def close(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        if self.api_service:
            await self.api_service.stop()
        await self.engine.stop()

        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "message_to_event",
    "member_to_event",
    "DiscordActuator",
    "RaidGuardBot",
]
