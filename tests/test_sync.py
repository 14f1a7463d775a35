"""Tests for reconciliation of Running timers against the scheduler (bt.core.sync)."""

import shutil
import tempfile
import unittest
from unittest.mock import patch

from bt.core.operations import TimerService
from bt.core.sync import reconcile
from bt.core.timer_state import RUNNING, PAUSED, LOST
from tests.support import FakeScheduler, FixedClock, make_context


class TestReconcile(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.scheduler = FakeScheduler()
        self.clock = FixedClock()
        self.ctx = make_context(self.tmpdir, scheduler=self.scheduler, clock=self.clock)
        self.service = TimerService(self.ctx)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _lose_wakeup(self, timer_id):
        self.scheduler.armed.pop(timer_id)

    def test_armed_timer_untouched(self):
        self.service.start("1m")
        self.clock.advance(600)
        timers = reconcile(self.ctx)
        self.assertEqual(timers[0].state, RUNNING)

    def test_missing_wakeup_past_end_becomes_lost(self):
        self.service.start("1m")
        self._lose_wakeup("1")
        self.clock.advance(61)
        timers = reconcile(self.ctx)
        self.assertEqual(timers[0].state, LOST)
        self.assertEqual(timers[0].remaining_seconds, 0)
        stored = self.ctx.store.load(force=True)[0]
        self.assertEqual(stored.state, LOST)

    def test_missing_wakeup_future_end_stays_running(self):
        self.service.start("10m")
        self._lose_wakeup("1")
        self.clock.advance(30)
        before = self.ctx.store.load(force=True)
        timers = reconcile(self.ctx)
        self.assertEqual(timers[0].state, RUNNING)
        self.assertIsNone(timers[0].remaining_seconds)
        self.assertEqual(self.ctx.store.load(force=True), before)

    def test_unparseable_end_time_lost_with_full_seconds(self):
        self.service.start("5m")
        self._lose_wakeup("1")
        timers = self.ctx.store.load(force=True)
        timers[0].end_time = "not a time"
        self.ctx.store.save(timers)
        result = reconcile(self.ctx)
        self.assertEqual(result[0].state, LOST)
        self.assertEqual(result[0].remaining_seconds, 300)

    def test_non_running_records_ignored(self):
        self.service.start("1m")
        self.service.pause("1")
        self.clock.advance(3600)
        timers = reconcile(self.ctx)
        self.assertEqual(timers[0].state, PAUSED)

    def test_only_stale_timers_demoted(self):
        self.service.start("1m")
        self.service.start("1h")
        self._lose_wakeup("1")
        self._lose_wakeup("2")
        self.clock.advance(120)
        states = {t.id: t.state for t in reconcile(self.ctx)}
        self.assertEqual(states, {"1": LOST, "2": RUNNING})

    def test_timer_advanced_by_handler_not_demoted(self):
        """A fire handler re-arming the timer between the check and the write wins."""
        self.service.start("1m", "x", 2)
        self._lose_wakeup("1")
        self.clock.advance(61)

        original_load = self.ctx.store.load

        def load_then_fire(force=False):
            if force:
                # Simulate the handler's write landing right before our re-read
                timers = original_load(force=True)
                timers[0].run_from(self.clock())
                self.ctx.store.save(timers)
            return original_load(force=force)

        with patch.object(self.ctx.store, "load", side_effect=load_then_fire):
            timers = reconcile(self.ctx)
        self.assertEqual(timers[0].state, RUNNING)

    def test_resume_lost_after_expiry_completes(self):
        self.service.start("1m")
        self._lose_wakeup("1")
        self.clock.advance(120)
        reconcile(self.ctx)
        timer = self.service.resume("1")
        self.assertEqual(timer.state, "Completed")


if __name__ == "__main__":
    unittest.main()
