"""
util.py

Small helpers shared across modules.
"""

from __future__ import annotations

__all__ = ["strtobool"]

_TRUE = {"y", "yes", "t", "true", "on", "1"}
_FALSE = {"n", "no", "f", "false", "off", "0"}


def strtobool(val: str) -> bool:
    """
    Convert a string representation of truth to True or False.

    Replacement for the removed distutils.util.strtobool.

    Raises:
        ValueError: if val is not a recognised boolean string
    """
    val = val.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    raise ValueError(f"invalid truth value {val!r}")
