"""
commands.py

Administrator slash commands for changing the bot's status.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from statusbot.env import COLOUR
from statusbot.errors import ValidationError
from statusbot.reconciler import ApplyOutcome, StatusReconciler
from statusbot.status import ActivityKind, DesiredStatus

if TYPE_CHECKING:
    from statusbot.bot import StatusBot

logger = logging.getLogger(__name__)

STATUS_CHOICES = [
    app_commands.Choice(name=kind.label, value=kind.value)
    for kind in (
        ActivityKind.PLAYING,
        ActivityKind.LISTENING,
        ActivityKind.WATCHING,
        ActivityKind.COMPETING,
        ActivityKind.STREAMING,
        ActivityKind.CUSTOM,
    )
]

NOT_ADMIN_MESSAGE = "❌ You need administrator permissions to use this command."


def outcome_message(outcome: ApplyOutcome, done: str) -> str:
    """Reply text for an ApplyOutcome."""
    if outcome.applied:
        return f"✅ {done}"
    if outcome.deferred:
        return f"⏳ {done} It will be applied once the bot is connected."
    return f"❌ {done} But Discord rejected it. Error: {outcome.error}"


async def reply(interaction: discord.Interaction, content: str | None, **kwargs) -> None:
    """Ephemeral reply that also works after the interaction was answered."""
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=True, **kwargs)
    else:
        await interaction.response.send_message(content, ephemeral=True, **kwargs)


class StatusCommands(commands.Cog):
    """Slash commands that change the bot's status. Administrator only."""

    def __init__(self, bot: StatusBot, reconciler: StatusReconciler):
        self.bot = bot
        self.reconciler = reconciler

    @app_commands.command(name="changestatus", description="Change the bot's status (Admin only)")
    @app_commands.rename(activity_type="type")
    @app_commands.describe(
        activity_type="The type of status",
        text="The new status text",
        url="Stream URL, required for Streaming",
    )
    @app_commands.choices(activity_type=STATUS_CHOICES)
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    async def change_status(
        self,
        interaction: discord.Interaction,
        activity_type: app_commands.Choice[str],
        text: str,
        url: str | None = None,
    ):
        current = self.reconciler.get_desired()
        try:
            status = DesiredStatus.create(
                activity_type.value, text=text, url=url, about_me=current.about_me if current else None
            )
        except ValidationError as e:
            await reply(interaction, f"❌ {e}")
            return

        outcome = await self.reconciler.set_desired(status)
        await reply(interaction, outcome_message(outcome, f"Bot status updated to: {status.describe()}."))
        logger.info(f"Status changed to: {status.describe()} by {interaction.user}")

    @app_commands.command(name="clearstatus", description="Remove the bot's status (Admin only)")
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    async def clear_status(self, interaction: discord.Interaction):
        outcome = await self.reconciler.clear()
        await reply(interaction, outcome_message(outcome, "Bot status cleared."))
        logger.info(f"Status cleared by {interaction.user}")

    @app_commands.command(name="setaboutme", description="Set the bot's About Me section (Admin only)")
    @app_commands.describe(text="The new About Me text")
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    async def set_about_me(self, interaction: discord.Interaction, text: str):
        if not text.strip():
            await reply(interaction, "❌ Please provide text for the About Me section.")
            return

        # Editing the application is a REST round trip that can outlast the 3s reply window
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            outcome = await self.reconciler.set_about_me(text.strip())
        except ValidationError as e:
            await reply(interaction, f"❌ {e}")
            return

        await reply(interaction, outcome_message(outcome, f'Bot About Me updated to: "{text.strip()}".'))
        logger.info(f"About Me changed to: {text.strip()!r} by {interaction.user}")

    @app_commands.command(name="showstatus", description="Show the bot's desired and current status (Admin only)")
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    async def show_status(self, interaction: discord.Interaction):
        desired = self.reconciler.get_desired()
        observed_type, observed_text = self.reconciler.presence.observe()

        embed = discord.Embed(title="Bot status", colour=COLOUR)
        embed.add_field(name="Desired", value=desired.describe() if desired else "Not set", inline=False)
        if observed_type is None:
            observed = f"Unknown activity {observed_text or ''}".strip()
        elif observed_type is ActivityKind.CLEARED:
            observed = observed_type.label
        else:
            observed = f"{observed_type.label} {observed_text or ''}".strip()
        embed.add_field(name="Observed", value=observed, inline=False)
        if desired and desired.url:
            embed.add_field(name="Stream URL", value=desired.url, inline=False)
        if desired and desired.about_me:
            embed.add_field(name="About Me", value=desired.about_me, inline=False)

        await reply(interaction, None, embed=embed)

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        if isinstance(error, app_commands.MissingPermissions):
            await reply(interaction, NOT_ADMIN_MESSAGE)
            return

        logger.error("Command error", exc_info=error)
        message = "❌ An error occurred while processing your command."
        original = getattr(error, "original", error)
        code = getattr(original, "code", None)
        if code:
            message += f" Error code: {code}"
        await reply(interaction, message)
