"""
status_store.py

Persists the desired status as a single JSON document.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from statusbot.errors import PersistenceError, ValidationError
from statusbot.status import DesiredStatus

logger = logging.getLogger(__name__)

# Status file path in data directory
DEFAULT_STATUS_FILE = Path(__file__).parent.parent / "data" / "status.json"


class StatusStore:
    """Reads and writes the status document. Never raises to the caller."""

    def __init__(self, path: str | Path = DEFAULT_STATUS_FILE):
        self.path = Path(path)

    def load(self) -> DesiredStatus | None:
        """
        Read the persisted status.

        Returns:
            The stored status, or None if the file is missing or unusable
        """
        try:
            if not self.path.exists():
                return None

            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)

            return DesiredStatus.from_dict(data)

        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to read status file {self.path}: {e}")
            return None

    def write(self, status: DesiredStatus) -> None:
        """Write the status document, raising PersistenceError on failure."""
        temp_file = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            # Write atomically by writing to a temp file then renaming.
            # Each write gets its own temp file so concurrent saves never share one.
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                temp_file = Path(f.name)
                json.dump(status.to_dict(), f, indent=2)
            temp_file.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            if temp_file is not None:
                temp_file.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write status file {self.path}: {e}") from e

    def save(self, status: DesiredStatus) -> bool:
        """
        Write the status document, replacing any previous one.

        Args:
            status: Status to persist

        Returns:
            True on success, False if the write failed
        """
        try:
            self.write(status)
            return True
        except PersistenceError as e:
            logger.error(str(e))
            return False
