"""
presence.py

Capability interface between the reconciler and the Discord gateway.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import discord

from statusbot.errors import RemoteApplyError
from statusbot.status import ActivityKind, DesiredStatus

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = {
    ActivityKind.PLAYING: discord.ActivityType.playing,
    ActivityKind.STREAMING: discord.ActivityType.streaming,
    ActivityKind.LISTENING: discord.ActivityType.listening,
    ActivityKind.WATCHING: discord.ActivityType.watching,
    ActivityKind.COMPETING: discord.ActivityType.competing,
    ActivityKind.CUSTOM: discord.ActivityType.custom,
}

ACTIVITY_KINDS = {value: key for key, value in ACTIVITY_TYPES.items()}


class PresenceClient(Protocol):
    """What the reconciler needs from the chat platform."""

    def is_ready(self) -> bool: ...

    async def apply(self, status: DesiredStatus) -> None: ...

    def observe(self) -> tuple[ActivityKind | None, str | None]: ...

    async def apply_about_me(self, text: str | None) -> None: ...


def build_activity(status: DesiredStatus) -> discord.BaseActivity | None:
    """Convert a desired status into the discord.py activity object, None when cleared."""
    kind = status.activity_type
    if kind is ActivityKind.CLEARED:
        return None
    if kind is ActivityKind.PLAYING:
        return discord.Game(name=status.text)
    if kind is ActivityKind.STREAMING:
        return discord.Streaming(name=status.text, url=status.url)
    if kind is ActivityKind.CUSTOM:
        return discord.CustomActivity(name=status.text or "")
    return discord.Activity(type=ACTIVITY_TYPES[kind], name=status.text)


def describe_activity(activity: discord.BaseActivity | None) -> tuple[ActivityKind | None, str | None]:
    """Reduce an observed discord.py activity to (kind, text). The kind is None for types we never set."""
    if activity is None:
        return ActivityKind.CLEARED, None
    activity_type = getattr(activity, "type", None)
    return ACTIVITY_KINDS.get(activity_type), getattr(activity, "name", None)


class DiscordPresence:
    """PresenceClient backed by a discord.py client."""

    def __init__(self, client: discord.Client):
        self.client = client

    def is_ready(self) -> bool:
        return self.client.is_ready() and not self.client.is_closed()

    async def apply(self, status: DesiredStatus) -> None:
        if not self.is_ready():
            raise RemoteApplyError("Discord gateway is not connected")

        activity = build_activity(status)
        try:
            await self.client.change_presence(activity=activity)
        except discord.HTTPException as e:
            raise RemoteApplyError(f"Discord rejected the presence update: {e.text or e}", e.code) from e
        except (discord.DiscordException, OSError, asyncio.TimeoutError) as e:
            raise RemoteApplyError(f"Failed to update presence: {e}") from e

        # Re-sent by the gateway on the next IDENTIFY
        self.client.activity = activity
        logger.debug(f"Presence set to {status.describe()}")

    def observe(self) -> tuple[ActivityKind | None, str | None]:
        for guild in self.client.guilds:
            if guild.me is not None:
                return describe_activity(guild.me.activity)
        return describe_activity(self.client.activity)

    async def apply_about_me(self, text: str | None) -> None:
        if not self.is_ready():
            raise RemoteApplyError("Discord gateway is not connected")

        try:
            app_info = await self.client.application_info()
            await app_info.edit(description=text or "")
        except discord.HTTPException as e:
            raise RemoteApplyError(f"Discord rejected the About Me update: {e.text or e}", e.code) from e
        except (discord.DiscordException, OSError, asyncio.TimeoutError) as e:
            raise RemoteApplyError(f"Failed to update About Me: {e}") from e
