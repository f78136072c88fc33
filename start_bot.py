"""
start_bot.py

Entrypoint: runs the bot together with its HTTP/WebSocket control API.
"""

from __future__ import annotations

import logging

import discord

from statusbot.log import setup_logging

setup_logging()

from statusbot import env  # noqa: E402  (configuration is read at import)
from statusbot.bot import StatusBot  # noqa: E402
from statusbot.status_store import StatusStore  # noqa: E402

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    if env.DEBUG_MODE:
        setup_logging(debug=True)

    bot = StatusBot(
        StatusStore(env.STATUS_FILE),
        interval=env.RECONCILE_INTERVAL,
        debug_guilds=env.DEBUG_GUILDS,
        sync_commands=env.SYNC_SLASH_COMMANDS,
        api_key=env.CONTROL_API_KEY,
        host=env.HOST,
        port=env.PORT if env.ENABLE_WEB else None,
    )
    if env.CLIENT_ID:
        logger.info(
            "Invite URL: https://discord.com/oauth2/authorize"
            f"?client_id={env.CLIENT_ID}&scope=bot+applications.commands"
        )
    try:
        bot.run(env.TOKEN, log_handler=None)
    except discord.LoginFailure as e:
        logger.critical(f"[bold red]Failed to login: {e}[/bold red]", extra={"markup": True})
        exit(1)
