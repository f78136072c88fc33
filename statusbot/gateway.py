"""
gateway.py

Request validation and result formatting shared by the slash commands,
the HTTP routes and the WebSocket channel.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any

from statusbot.errors import ValidationError
from statusbot.reconciler import ApplyOutcome
from statusbot.status import ActivityKind, DesiredStatus


def parse_status_payload(data: Any, about_me: str | None = None) -> DesiredStatus:
    """
    Build a DesiredStatus from a request body.

    Accepts {"type": ..., "text": ..., "url": ...}; a bare string is taken as
    the text of a custom status.

    Args:
        data: The "status" field of the request
        about_me: About Me text to carry over from the current status

    Raises:
        ValidationError: if the payload is malformed
    """
    if isinstance(data, str):
        return DesiredStatus.create(ActivityKind.CUSTOM, text=data, about_me=about_me)
    if not isinstance(data, dict):
        raise ValidationError("Missing status")
    if "type" not in data and "activityType" not in data:
        raise ValidationError("Missing status type")

    return DesiredStatus.create(
        data.get("type", data.get("activityType")),
        text=data.get("text"),
        url=data.get("url"),
        about_me=about_me,
    )


def check_api_key(expected: str, supplied: str | None) -> bool:
    """Constant-time key comparison. Nothing matches when no key is configured."""
    if not expected or not supplied:
        return False
    return secrets.compare_digest(expected.encode(), supplied.encode())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def outcome_payload(outcome: ApplyOutcome, action: str = "Status updated") -> dict[str, Any]:
    """JSON result body for an ApplyOutcome."""
    status = outcome.status.to_dict() if outcome.status else None
    if outcome.applied:
        return {"success": True, "message": action, "status": status, "timestamp": now_iso()}
    if outcome.deferred:
        return {
            "success": True,
            "message": f"{action}, will be applied once the bot is connected",
            "status": status,
            "timestamp": now_iso(),
        }
    return {
        "success": False,
        "message": f"{action} but could not be applied",
        "error": outcome.error,
        "status": status,
        "timestamp": now_iso(),
    }


def error_payload(message: str) -> dict[str, Any]:
    return {"success": False, "error": message, "timestamp": now_iso()}
