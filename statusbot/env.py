"""
env.py

Parse environment variables from .env file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from dotenv import load_dotenv

from discord import Colour

from .errors import FatalStartupError
from .util import strtobool

__all__ = [
    "DEBUG_MODE",
    "TOKEN",
    "CLIENT_ID",
    "COLOUR",
    "STATUS_FILE",
    "RECONCILE_INTERVAL",
    "DEBUG_GUILDS",
    "SYNC_SLASH_COMMANDS",
    "ENABLE_WEB",
    "HOST",
    "PORT",
    "CONTROL_API_KEY",
    "read_token",
]

logger = logging.getLogger(__name__)


def read_token(environ: Mapping[str, str]) -> str:
    """
    Get the bot token, preferring DISCORD_TOKEN over TOKEN.

    Raises:
        FatalStartupError: if neither variable is set
    """
    token = environ.get("DISCORD_TOKEN") or environ.get("TOKEN")
    if not token:
        raise FatalStartupError("DISCORD_TOKEN (or TOKEN) not set.")
    return token


# Load envs
load_dotenv()

DEBUG_MODE = strtobool(os.getenv("DEBUG_MODE", "off"))
if DEBUG_MODE:
    logger.warning("[red]Debug mode is activated.[/red]", extra={"markup": True})

try:
    TOKEN = read_token(os.environ)
except FatalStartupError as e:
    logger.critical(f"[bold red]{e}[/bold red]", extra={"markup": True})
    exit(1)

CLIENT_ID = os.getenv("CLIENT_ID") or os.getenv("DISCORD_CLIENT_ID", "")

# Sets the embed colour, 0x749DA1 is teal
COLOUR = Colour(0x749DA1)

# Default is ../data/status.json
STATUS_FILE_NAME = "status.json"
STATUS_FILE = os.getenv(
    "STATUS_FILE",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", STATUS_FILE_NAME),
)

try:
    RECONCILE_INTERVAL = float(os.getenv("RECONCILE_INTERVAL", "60"))
    if RECONCILE_INTERVAL <= 0:
        raise ValueError(RECONCILE_INTERVAL)
except ValueError:
    logger.critical(
        "[bold red]RECONCILE_INTERVAL must be a positive number of seconds.[/bold red]", extra={"markup": True}
    )
    exit(1)

# Configure debug servers
if "DEBUG_GUILDS" in os.environ:
    if "DEBUG_GUILD" in os.environ:
        logger.critical(
            "[bold red]DEBUG_GUILD and DEBUG_GUILDS cannot be both set.[/bold red]", extra={"markup": True}
        )
        exit(1)
    try:
        DEBUG_GUILDS = list(map(int, os.environ["DEBUG_GUILDS"].split(",")))
    except ValueError:
        logger.critical(
            "[bold red]DEBUG_GUILDS must be a comma-separated list of guild IDs.[/bold red]",
            extra={"markup": True},
        )
        exit(1)
elif "DEBUG_GUILD" in os.environ:
    try:
        DEBUG_GUILDS: list[int] = [int(os.environ["DEBUG_GUILD"])]  # type: ignore[reportConstantRedefinition]
    except ValueError:
        logger.critical(
            "[bold red]DEBUG_GUILD must be a guild ID. "
            "Use DEBUG_GUILDS if you have multiple debug servers.[/bold red]",
            extra={"markup": True},
        )
        exit(1)
else:
    DEBUG_GUILDS = []  # type: ignore[reportConstantRedefinition]

SYNC_SLASH_COMMANDS = strtobool(os.getenv("SYNC_SLASH_COMMANDS", "on"))

# Control API configuration
ENABLE_WEB = strtobool(os.getenv("ENABLE_WEB", "on"))
HOST = os.getenv("HOST", "0.0.0.0")
try:
    PORT = int(os.getenv("PORT", "3000"))
except ValueError:
    logger.critical("[bold red]PORT must be a number.[/bold red]", extra={"markup": True})
    exit(1)
CONTROL_API_KEY = os.getenv("CONTROL_API_KEY", "")

if ENABLE_WEB and not CONTROL_API_KEY:
    logger.warning(
        "[yellow]CONTROL_API_KEY not set. HTTP and WebSocket status control is disabled.[/yellow]",
        extra={"markup": True},
    )
