"""
bot.py

The Discord client: wires the reconciler, the slash commands and the
control API onto one event loop.
"""

from __future__ import annotations

import asyncio
import logging

import discord
import uvicorn
from discord.ext import commands

from statusbot.commands import StatusCommands
from statusbot.presence import DiscordPresence
from statusbot.reconciler import DEFAULT_INTERVAL, StatusReconciler
from statusbot.status_store import StatusStore
from statusbot.web_app import create_app

logger = logging.getLogger(__name__)


class StatusBot(commands.Bot):
    """Bot that keeps its own presence in line with the stored status."""

    def __init__(
        self,
        store: StatusStore,
        *,
        interval: float = DEFAULT_INTERVAL,
        debug_guilds: list[int] | None = None,
        sync_commands: bool = True,
        api_key: str = "",
        host: str = "0.0.0.0",
        port: int | None = None,
    ):
        intents = discord.Intents.default()
        super().__init__(command_prefix=commands.when_mentioned, intents=intents, help_command=None)

        self.reconciler = StatusReconciler(DiscordPresence(self), store, interval=interval)
        self.debug_guilds = debug_guilds or []
        self.sync_commands = sync_commands
        self.api_key = api_key
        self.host = host
        self.port = port
        self.web_server: uvicorn.Server | None = None
        self._web_task: asyncio.Task | None = None

    async def setup_hook(self) -> None:
        await self.add_cog(StatusCommands(self, self.reconciler))

        if self.sync_commands:
            await self.register_commands()

        if self.port is not None:
            await self.start_web()

    async def register_commands(self) -> None:
        """Sync slash commands, to the debug guilds only when configured."""
        try:
            if self.debug_guilds:
                for guild_id in self.debug_guilds:
                    guild = discord.Object(id=guild_id)
                    self.tree.copy_global_to(guild=guild)
                    synced = await self.tree.sync(guild=guild)
                    logger.info(f"Synced {len(synced)} slash commands to guild {guild_id}")
            else:
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error("Failed to sync slash commands", exc_info=e)

    async def start_web(self) -> None:
        """Serve the control API on the bot's event loop."""
        app = create_app(self.reconciler, self.api_key)
        config = uvicorn.Config(app, host=self.host, port=self.port, log_config=None, access_log=True)
        self.web_server = uvicorn.Server(config)
        self._web_task = asyncio.create_task(self.web_server.serve())
        logger.info(f"Starting web server on {self.host}:{self.port}")

    async def on_ready(self) -> None:
        logger.info(f"Bot is online and ready! Logged in as {self.user} (ID: {self.user.id})")
        await self.reconciler.initialize()
        self.reconciler.start()

    async def on_resumed(self) -> None:
        logger.info("Gateway session resumed, checking presence")
        await self.reconciler.reconcile_tick()

    async def close(self) -> None:
        logger.info("Bot shutting down...")
        await self.reconciler.stop()

        if self.web_server is not None:
            self.web_server.should_exit = True
        if self._web_task is not None:
            try:
                await asyncio.wait_for(self._web_task, timeout=5)
            except asyncio.TimeoutError:
                logger.warning("Web server did not stop in time")

        await super().close()
