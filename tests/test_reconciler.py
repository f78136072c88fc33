"""
test_reconciler.py

Tests for the status reconciler: seeding, applying and drift correction.
"""

import asyncio
import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from fakes import FakePresence

from statusbot.errors import ValidationError
from statusbot.reconciler import ReconcilerState, StatusReconciler
from statusbot.status import DEFAULT_STATUS, ActivityKind, DesiredStatus
from statusbot.status_store import StatusStore


class SlowLoadStore(StatusStore):
    """Store whose reads block for a while, like a slow disk."""

    def load(self):
        status = super().load()
        time.sleep(0.2)
        return status


class SlowFirstSaveStore(StatusStore):
    """Store whose first write blocks for a while."""

    def __init__(self, path):
        super().__init__(path)
        self.saves = 0

    def save(self, status):
        self.saves += 1
        if self.saves == 1:
            time.sleep(0.2)
        return super().save(status)


class ReconcilerTestCase(unittest.TestCase):
    """Creates a reconciler backed by a temp file and a fake presence."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name) / "data" / "status.json"
        self.store = StatusStore(self.path)
        self.presence = FakePresence()
        self.reconciler = StatusReconciler(self.presence, self.store, interval=0.01)

    def tearDown(self):
        self.tmpdir.cleanup()


class TestInitialize(ReconcilerTestCase):
    """Test startup behaviour."""

    def test_boot_without_file_seeds_default(self):
        """Boot with no persisted file seeds, saves and applies the default."""

        async def run_test():
            outcome = await self.reconciler.initialize()

            self.assertTrue(outcome.applied)
            self.assertEqual(self.reconciler.get_desired(), DEFAULT_STATUS)
            self.assertEqual(self.store.load(), DEFAULT_STATUS)
            self.assertEqual(self.presence.applied, [DEFAULT_STATUS])
            self.assertIs(self.reconciler.state, ReconcilerState.ACTIVE)

        asyncio.run(run_test())

    def test_boot_with_file_applies_stored_status(self):
        stored = DesiredStatus.create("WATCHING", text="the stars", about_me="Hello there")
        self.store.save(stored)

        async def run_test():
            await self.reconciler.initialize()

            self.assertEqual(self.reconciler.get_desired(), stored)
            self.assertEqual(self.presence.applied, [stored])
            self.assertEqual(self.presence.about_me_calls, ["Hello there"])

        asyncio.run(run_test())

    def test_second_initialize_reapplies(self):
        async def run_test():
            await self.reconciler.initialize()
            await self.reconciler.initialize()

            self.assertEqual(self.presence.applied, [DEFAULT_STATUS, DEFAULT_STATUS])

        asyncio.run(run_test())

    def test_set_before_ready_is_deferred(self):
        status = DesiredStatus.create("LISTENING", text="Spotify")

        async def run_test():
            outcome = await self.reconciler.set_desired(status)

            self.assertTrue(outcome.deferred)
            self.assertFalse(outcome.applied)
            self.assertEqual(self.presence.applied, [])
            self.assertEqual(self.store.load(), status)

            await self.reconciler.initialize()

            # The deferred value wins over the default
            self.assertEqual(self.presence.applied, [status])
            self.assertEqual(self.reconciler.get_desired(), status)

        asyncio.run(run_test())

    def test_set_during_initialize_is_not_overwritten(self):
        """A status set while initialize() is still reading the store survives it."""
        reconciler = StatusReconciler(self.presence, SlowLoadStore(self.path))
        status = DesiredStatus.create("LISTENING", text="Spotify")

        async def run_test():
            init = asyncio.create_task(reconciler.initialize())
            await asyncio.sleep(0.05)
            await reconciler.set_desired(status)
            await init

            self.assertEqual(reconciler.get_desired(), status)
            self.assertEqual(StatusStore(self.path).load(), status)
            self.assertEqual(self.presence.applied[-1], status)
            self.assertIs(reconciler.state, ReconcilerState.ACTIVE)

        asyncio.run(run_test())


class TestSetDesired(ReconcilerTestCase):
    """Test updating the desired status."""

    def test_round_trip(self):
        statuses = [
            DesiredStatus.create("PLAYING", text="Chess"),
            DesiredStatus.create("LISTENING", text="Spotify"),
            DesiredStatus.create("CUSTOM", text=""),
            DesiredStatus.cleared(),
        ]

        async def run_test():
            await self.reconciler.initialize()
            for status in statuses:
                await self.reconciler.set_desired(status)
                self.assertEqual(self.reconciler.get_desired(), status)

        asyncio.run(run_test())

    def test_streaming_applies_exact_triple(self):
        status = DesiredStatus.create("STREAMING", text="Big Game", url="https://twitch.tv/x")

        async def run_test():
            await self.reconciler.initialize()
            outcome = await self.reconciler.set_desired(status)

            self.assertTrue(outcome.ok)
            applied = self.presence.applied[-1]
            self.assertEqual(
                (applied.activity_type, applied.text, applied.url),
                (ActivityKind.STREAMING, "Big Game", "https://twitch.tv/x"),
            )
            self.assertEqual(self.reconciler.get_desired(), status)

        asyncio.run(run_test())

    def test_invalid_status_rejected(self):
        async def run_test():
            await self.reconciler.initialize()
            with self.assertRaises(ValidationError):
                await self.reconciler.set_desired(DesiredStatus(ActivityKind.STREAMING, "Big Game"))

            # Nothing changed
            self.assertEqual(self.reconciler.get_desired(), DEFAULT_STATUS)
            self.assertEqual(len(self.presence.applied), 1)

        asyncio.run(run_test())

    def test_remote_failure_keeps_desired_state(self):
        status = DesiredStatus.create("PLAYING", text="New")

        async def run_test():
            await self.reconciler.initialize()
            self.presence.error = "rate limited"

            with self.assertLogs("statusbot.reconciler", level="ERROR"):
                outcome = await self.reconciler.set_desired(status)

            self.assertFalse(outcome.ok)
            self.assertIn("rate limited", outcome.error)
            self.assertEqual(self.reconciler.get_desired(), status)
            self.assertEqual(self.store.load(), status)

            # Next tick retries once the remote recovers
            self.presence.error = None
            self.assertTrue(await self.reconciler.reconcile_tick())
            self.assertEqual(self.presence.applied[-1], status)

        asyncio.run(run_test())

    def test_overlapping_sets_persist_last_value(self):
        """Two updates racing each other leave disk and memory on the later one."""
        store = SlowFirstSaveStore(self.path)
        reconciler = StatusReconciler(self.presence, store)
        first = DesiredStatus.create("PLAYING", text="A")
        second = DesiredStatus.create("PLAYING", text="B")

        async def run_test():
            await asyncio.gather(reconciler.set_desired(first), reconciler.set_desired(second))

            self.assertEqual(reconciler.get_desired(), second)
            self.assertEqual(StatusStore(self.path).load(), second)
            self.assertEqual(store.saves, 2)

        asyncio.run(run_test())

    def test_overlapping_sets_after_ready_apply_last_value(self):
        async def run_test():
            await self.reconciler.initialize()
            self.reconciler.store = SlowFirstSaveStore(self.path)
            first = DesiredStatus.create("PLAYING", text="A")
            second = DesiredStatus.create("PLAYING", text="B")

            await asyncio.gather(self.reconciler.set_desired(first), self.reconciler.set_desired(second))

            self.assertEqual(self.reconciler.get_desired(), second)
            self.assertEqual(self.store.load(), second)
            self.assertEqual(self.presence.applied[-1], second)

        asyncio.run(run_test())

    def test_persist_failure_is_not_fatal(self):
        blocker = Path(self.tmpdir.name) / "blocker"
        blocker.write_text("", encoding="utf-8")
        reconciler = StatusReconciler(self.presence, StatusStore(blocker / "status.json"))
        status = DesiredStatus.create("PLAYING", text="Memory only")

        async def run_test():
            with self.assertLogs("statusbot.status_store", level="ERROR"):
                await reconciler.initialize()
                outcome = await reconciler.set_desired(status)

            self.assertTrue(outcome.applied)
            self.assertEqual(reconciler.get_desired(), status)

        asyncio.run(run_test())

    def test_clear_keeps_about_me(self):
        async def run_test():
            await self.reconciler.initialize()
            await self.reconciler.set_about_me("About the bot")
            outcome = await self.reconciler.clear()

            self.assertTrue(outcome.applied)
            desired = self.reconciler.get_desired()
            self.assertIs(desired.activity_type, ActivityKind.CLEARED)
            self.assertEqual(desired.about_me, "About the bot")

        asyncio.run(run_test())

    def test_set_about_me(self):
        async def run_test():
            await self.reconciler.initialize()
            outcome = await self.reconciler.set_about_me("Hello")

            self.assertTrue(outcome.applied)
            self.assertEqual(self.presence.about_me_calls, ["Hello"])
            self.assertEqual(self.store.load().about_me, "Hello")
            # Activity untouched
            self.assertEqual(self.reconciler.get_desired().text, "Discord")

            with self.assertRaises(ValidationError):
                await self.reconciler.set_about_me("x" * 401)

        asyncio.run(run_test())


class TestReconcileTick(ReconcilerTestCase):
    """Test drift detection."""

    def test_drift_triggers_exactly_one_apply(self):
        self.store.save(DesiredStatus.create("PLAYING", text="New"))

        async def run_test():
            await self.reconciler.initialize()
            self.presence.applied.clear()
            self.presence.observed = (ActivityKind.PLAYING, "Old")

            with self.assertLogs("statusbot.reconciler", level="WARNING"):
                self.assertTrue(await self.reconciler.reconcile_tick())

            self.assertEqual(len(self.presence.applied), 1)
            self.assertEqual(self.presence.applied[0].text, "New")

        asyncio.run(run_test())

    def test_converged_makes_no_call(self):
        async def run_test():
            await self.reconciler.initialize()
            self.presence.applied.clear()

            self.assertFalse(await self.reconciler.reconcile_tick())
            self.assertEqual(self.presence.applied, [])

        asyncio.run(run_test())

    def test_type_drift_detected(self):
        async def run_test():
            await self.reconciler.initialize()
            self.presence.observed = (ActivityKind.WATCHING, "Discord")

            self.assertTrue(await self.reconciler.reconcile_tick())

        asyncio.run(run_test())

    def test_unknown_observed_type_reapplies_cleared(self):
        async def run_test():
            await self.reconciler.initialize()
            await self.reconciler.clear()
            self.presence.applied.clear()
            self.presence.observed = (None, "Something else")

            with self.assertLogs("statusbot.reconciler", level="WARNING"):
                self.assertTrue(await self.reconciler.reconcile_tick())
            self.assertIs(self.presence.applied[0].activity_type, ActivityKind.CLEARED)

        asyncio.run(run_test())

    def test_noop_without_desired_state(self):
        async def run_test():
            self.assertFalse(await self.reconciler.reconcile_tick())
            self.assertEqual(self.presence.applied, [])

        asyncio.run(run_test())


class TestReconcileLoop(ReconcilerTestCase):
    """Test the periodic task."""

    def test_loop_corrects_drift_and_stops(self):
        async def run_test():
            await self.reconciler.initialize()
            self.presence.observed = (ActivityKind.CLEARED, None)

            self.reconciler.start()
            await asyncio.sleep(0.1)
            await self.reconciler.stop()

            self.assertGreaterEqual(len(self.presence.applied), 2)
            self.assertIsNone(self.reconciler._task)

            # No further ticks after stop
            count = len(self.presence.applied)
            self.presence.observed = (ActivityKind.CLEARED, None)
            await asyncio.sleep(0.05)
            self.assertEqual(len(self.presence.applied), count)

        asyncio.run(run_test())

    def test_loop_survives_tick_errors(self):
        async def run_test():
            await self.reconciler.initialize()
            self.presence.observe = MagicMock(side_effect=RuntimeError("boom"))

            with self.assertLogs("statusbot.reconciler", level="ERROR"):
                self.reconciler.start()
                await asyncio.sleep(0.05)

            self.assertFalse(self.reconciler._task.done())
            self.assertGreater(self.presence.observe.call_count, 1)
            await self.reconciler.stop()

        asyncio.run(run_test())

    def test_stop_without_start(self):
        asyncio.run(self.reconciler.stop())


if __name__ == "__main__":
    unittest.main()
