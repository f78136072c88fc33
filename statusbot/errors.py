"""
errors.py

Exception types shared by the store, the reconciler and the control surfaces.
"""

from __future__ import annotations


class StatusBotError(Exception):
    """Base class for all statusbot errors."""


class ValidationError(StatusBotError):
    """Caller supplied a malformed status (missing field, streaming without url, ...)."""


class PersistenceError(StatusBotError):
    """Reading or writing the status document failed."""


class RemoteApplyError(StatusBotError):
    """Discord rejected the presence update or could not be reached."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code

    def __str__(self) -> str:
        message = super().__str__()
        if self.code is not None:
            return f"{message} (error code: {self.code})"
        return message


class FatalStartupError(StatusBotError):
    """Required configuration is missing or invalid; the process must exit."""
