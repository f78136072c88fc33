"""
reconciler.py

Owns the desired status and keeps the bot's presence in line with it.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass

from statusbot.errors import RemoteApplyError
from statusbot.presence import PresenceClient
from statusbot.status import DEFAULT_STATUS, DesiredStatus
from statusbot.status_store import StatusStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60


class ReconcilerState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


@dataclass(frozen=True)
class ApplyOutcome:
    """Result of pushing a status to Discord."""

    status: DesiredStatus | None
    applied: bool = False
    deferred: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.applied or self.deferred


class StatusReconciler:
    """
    Holds the desired status, persists it and re-applies it on drift.

    Until initialize() runs (the bot reported ready) updates are stored and
    persisted but not pushed to Discord.

    Every change to the desired status and its write to disk happen under one
    lock, so the stored document is always the last value set in memory.
    """

    def __init__(
        self,
        presence: PresenceClient,
        store: StatusStore,
        interval: float = DEFAULT_INTERVAL,
        default: DesiredStatus = DEFAULT_STATUS,
    ):
        self.presence = presence
        self.store = store
        self.interval = interval
        self.default = default
        self.state = ReconcilerState.UNINITIALIZED
        self._desired: DesiredStatus | None = None
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self.state is ReconcilerState.ACTIVE

    def get_desired(self) -> DesiredStatus | None:
        return self._desired

    async def initialize(self) -> ApplyOutcome:
        """Load (or seed) the desired status and apply it. Safe to call again on reconnect."""
        if self.active:
            return await self.apply_desired()

        async with self._lock:
            if self._desired is None:
                stored = await asyncio.to_thread(self.store.load)
                if stored is None:
                    logger.info(f"No stored status, seeding default: {self.default.describe()}")
                    stored = self.default
                    await self._persist(stored)
                self._desired = stored
            else:
                logger.info("Applying status set before the bot was ready")
            self.state = ReconcilerState.ACTIVE
            status = self._desired

        outcome = await self.apply_desired()
        if status.about_me:
            await self._apply_about_me(status)
        return outcome

    async def set_desired(self, status: DesiredStatus) -> ApplyOutcome:
        """
        Replace the desired status, persist it and apply it.

        Raises:
            ValidationError: if the status breaks the document invariants
        """
        status.validate()
        async with self._lock:
            await self._replace(status)

        if not self.active:
            logger.info(f"Bot not ready, deferring status {status.describe()}")
            return ApplyOutcome(status, deferred=True)

        return await self.apply_desired()

    async def clear(self) -> ApplyOutcome:
        """Clear the activity, keeping the About Me text."""
        async with self._lock:
            current = await self._current()
            status = DesiredStatus.cleared(current.about_me)
            await self._replace(status)

        if not self.active:
            logger.info("Bot not ready, deferring status clear")
            return ApplyOutcome(status, deferred=True)

        return await self.apply_desired()

    async def set_about_me(self, text: str | None) -> ApplyOutcome:
        """Replace the About Me text on the desired status and apply it."""
        async with self._lock:
            status = (await self._current()).with_about_me(text)
            status.validate()
            await self._replace(status)

        if not self.active:
            return ApplyOutcome(status, deferred=True)
        return await self._apply_about_me(status)

    async def apply_desired(self) -> ApplyOutcome:
        """Push the in-memory desired status to Discord. Failures are logged, not raised."""
        status = self._desired
        if status is None:
            return ApplyOutcome(None)

        try:
            await self.presence.apply(status)
        except RemoteApplyError as e:
            logger.error(f"Failed to apply status {status.describe()}: {e}")
            return ApplyOutcome(status, error=str(e))

        logger.info(f"Status applied: {status.describe()}")
        return ApplyOutcome(status, applied=True)

    async def reconcile_tick(self) -> bool:
        """
        Compare the observed presence with the desired one and re-apply on drift.

        Returns:
            True if a re-apply was attempted
        """
        status = self._desired
        if status is None or not self.active:
            return False

        observed_type, observed_text = self.presence.observe()
        if status.matches(observed_type, observed_text):
            return False

        observed = observed_type.value if observed_type else "unknown"
        logger.warning(
            f"Presence drift: observed {observed} {observed_text!r}, expected {status.describe()}"
        )
        await self.apply_desired()
        return True

    def start(self) -> None:
        """Start the reconciliation loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.reconcile_loop())
        logger.info(f"Status reconciler started (every {self.interval}s)")

    async def stop(self) -> None:
        """Stop the reconciliation loop."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Status reconciler stopped")

    async def reconcile_loop(self) -> None:
        """Main loop - checks the presence every interval."""
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.reconcile_tick()
            except Exception as e:
                logger.error("Error in status reconcile loop", exc_info=e)

    async def _current(self) -> DesiredStatus:
        """Desired status, falling back to the stored one before initialize()."""
        if self._desired is not None:
            return self._desired
        return await asyncio.to_thread(self.store.load) or self.default

    async def _replace(self, status: DesiredStatus) -> None:
        """Swap in a new desired status and persist it. Caller holds the lock."""
        self._desired = status
        await self._persist(status)

    async def _persist(self, status: DesiredStatus) -> None:
        if not await asyncio.to_thread(self.store.save, status):
            logger.warning("Status not persisted, keeping it in memory only")

    async def _apply_about_me(self, status: DesiredStatus) -> ApplyOutcome:
        try:
            await self.presence.apply_about_me(status.about_me)
        except RemoteApplyError as e:
            logger.error(f"Failed to apply About Me: {e}")
            return ApplyOutcome(status, error=str(e))

        logger.info(f"About Me applied: {status.about_me!r}")
        return ApplyOutcome(status, applied=True)
