"""
status.py

The desired status document and its validation rules.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any

from statusbot.errors import ValidationError

# Discord limits
MAX_TEXT_LENGTH = 128
MAX_ABOUT_ME_LENGTH = 400


class ActivityKind(enum.Enum):
    """Activity types a bot can display, plus CLEARED for no activity."""

    PLAYING = "PLAYING"
    STREAMING = "STREAMING"
    LISTENING = "LISTENING"
    WATCHING = "WATCHING"
    COMPETING = "COMPETING"
    CUSTOM = "CUSTOM"
    CLEARED = "CLEARED"

    @classmethod
    def parse(cls, value: Any) -> ActivityKind:
        """Parse "PLAYING", "playing" or "Playing" into an ActivityKind."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Missing status type")
        try:
            return cls[value.strip().upper()]
        except KeyError:
            choices = ", ".join(kind.value for kind in cls)
            raise ValidationError(f"Unknown status type {value!r}, expected one of: {choices}") from None

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ActivityKind.PLAYING: "Playing",
    ActivityKind.STREAMING: "Streaming",
    ActivityKind.LISTENING: "Listening to",
    ActivityKind.WATCHING: "Watching",
    ActivityKind.COMPETING: "Competing in",
    ActivityKind.CUSTOM: "Custom",
    ActivityKind.CLEARED: "Cleared",
}


@dataclass(frozen=True)
class DesiredStatus:
    """
    The status the operator wants the bot to display.

    Instances are immutable; updates always build a new value so a reader
    never sees a half-updated status.
    """

    activity_type: ActivityKind
    text: str | None = None
    url: str | None = None
    about_me: str | None = None

    @classmethod
    def create(
        cls,
        activity_type: ActivityKind | str,
        text: str | None = None,
        url: str | None = None,
        about_me: str | None = None,
    ) -> DesiredStatus:
        """Build a status from loose input, normalizing blanks, and validate it."""
        kind = ActivityKind.parse(activity_type)
        for name, value in (("text", text), ("url", url), ("aboutMeText", about_me)):
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{name} must be a string")
        text = text.strip() if isinstance(text, str) else text
        url = url.strip() if isinstance(url, str) else url
        if kind is ActivityKind.CUSTOM and text is None:
            text = ""
        if kind is ActivityKind.CLEARED and not text:
            text = None
        status = cls(kind, text, url or None, about_me or None)
        status.validate()
        return status

    @classmethod
    def cleared(cls, about_me: str | None = None) -> DesiredStatus:
        return cls(ActivityKind.CLEARED, about_me=about_me)

    def validate(self) -> None:
        """Raise ValidationError unless the status satisfies the document invariants."""
        kind = self.activity_type
        if not isinstance(kind, ActivityKind):
            raise ValidationError("Missing status type")

        if kind is ActivityKind.CLEARED:
            if self.text is not None:
                raise ValidationError("A cleared status cannot have text")
        elif self.text is None or (kind is not ActivityKind.CUSTOM and not self.text.strip()):
            raise ValidationError(f"Please provide a status text for {kind.label}")
        elif len(self.text) > MAX_TEXT_LENGTH:
            raise ValidationError(f"Status text must be at most {MAX_TEXT_LENGTH} characters")

        if kind is ActivityKind.STREAMING:
            if not self.url:
                raise ValidationError("A streaming status requires a url")
            if not self.url.startswith(("http://", "https://")):
                raise ValidationError("Streaming url must start with http:// or https://")
        elif self.url is not None:
            raise ValidationError("Only a streaming status can have a url")

        if self.about_me is not None and len(self.about_me) > MAX_ABOUT_ME_LENGTH:
            raise ValidationError(f"About Me must be at most {MAX_ABOUT_ME_LENGTH} characters")

    def with_about_me(self, about_me: str | None) -> DesiredStatus:
        return replace(self, about_me=about_me or None)

    def matches(self, activity_type: ActivityKind | None, text: str | None) -> bool:
        """Whether an observed (type, text) pair shows this status. A None type never matches."""
        if activity_type is not self.activity_type:
            return False
        if self.activity_type is ActivityKind.CLEARED:
            return True
        return (text or "") == (self.text or "")

    def describe(self) -> str:
        """Human readable form, e.g. "Listening to Spotify"."""
        if self.activity_type is ActivityKind.CLEARED:
            return "Cleared"
        if not self.text:
            return self.activity_type.label
        return f"{self.activity_type.label} {self.text}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "activityType": self.activity_type.value,
            "text": self.text,
            "url": self.url,
            "aboutMeText": self.about_me,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DesiredStatus:
        """Inverse of to_dict; raises ValidationError on malformed documents."""
        if not isinstance(data, dict):
            raise ValidationError("Status document must be a JSON object")
        return cls.create(
            data.get("activityType"),
            text=data.get("text"),
            url=data.get("url"),
            about_me=data.get("aboutMeText"),
        )


DEFAULT_STATUS = DesiredStatus(ActivityKind.PLAYING, "Discord")
