"""
log.py

Console logging setup. Messages may use rich markup when logged with
extra={"markup": True}.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def setup_logging(debug: bool = False) -> None:
    """Route all logging (bot, discord.py, uvicorn) through a single rich handler."""
    handler = RichHandler(rich_tracebacks=True, show_path=debug)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    # discord.py is very chatty on DEBUG
    logging.getLogger("discord.gateway").setLevel(logging.INFO)
    logging.getLogger("discord.http").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO if debug else logging.WARNING)
