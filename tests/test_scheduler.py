"""Tests for the OS scheduler backends (bt.core.scheduler). Subprocess calls are patched out."""

import subprocess
import unittest
from datetime import timedelta, timezone
from unittest.mock import patch

from bt.core.scheduler import (
    SystemdScheduler, WindowsTaskScheduler, NullScheduler, build_scheduler,
)
from bt.util import local_now


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


HANDLER = ["/usr/bin/python3", "-m", "bt", "fire", "7"]


class TestSystemdScheduler(unittest.TestCase):

    def setUp(self):
        self.scheduler = SystemdScheduler()

    @patch("bt.core.scheduler.subprocess.run")
    def test_arm_disarms_then_registers(self, run):
        run.return_value = _completed()
        fire_at = local_now() + timedelta(seconds=90)
        self.assertTrue(self.scheduler.arm("7", fire_at, HANDLER))

        stop_args = run.call_args_list[0].args[0]
        self.assertEqual(stop_args[:3], ["systemctl", "--user", "stop"])
        self.assertEqual(stop_args[3], "bt-timer-7-*.timer")

        arm_args = run.call_args_list[1].args[0]
        self.assertEqual(arm_args[:2], ["systemd-run", "--user"])
        self.assertTrue(any(a.startswith("--unit=bt-timer-7-") for a in arm_args))
        expected = fire_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        self.assertIn(f"--on-calendar={expected} UTC", arm_args)
        self.assertEqual(arm_args[-5:], HANDLER)

    @patch("bt.core.scheduler.subprocess.run")
    def test_each_arm_gets_a_fresh_unit(self, run):
        run.return_value = _completed()
        fire_at = local_now() + timedelta(seconds=10)
        self.scheduler.arm("7", fire_at, HANDLER)
        self.scheduler.arm("7", fire_at, HANDLER)
        units = [a for call in run.call_args_list for a in call.args[0] if a.startswith("--unit=")]
        self.assertEqual(len(units), 2)
        self.assertNotEqual(units[0], units[1])

    @patch("bt.core.scheduler.subprocess.run")
    def test_arm_failure_is_soft(self, run):
        run.side_effect = [_completed(), _completed(1, stderr="Failed to connect to bus")]
        self.assertFalse(self.scheduler.arm("7", local_now(), HANDLER))

    @patch("bt.core.scheduler.subprocess.run", side_effect=FileNotFoundError("systemd-run"))
    def test_missing_binary_is_soft(self, run):
        self.assertFalse(self.scheduler.arm("7", local_now(), HANDLER))
        self.assertFalse(self.scheduler.disarm("7"))
        self.assertFalse(self.scheduler.exists("7"))

    @patch("bt.core.scheduler.subprocess.run")
    def test_past_fire_time_goes_off_now(self, run):
        run.return_value = _completed()
        self.scheduler.arm("7", local_now() - timedelta(seconds=3), HANDLER)
        arm_args = run.call_args_list[1].args[0]
        self.assertIn("--on-active=1s", arm_args)
        self.assertFalse(any(a.startswith("--on-calendar=") for a in arm_args))

    @patch("bt.core.scheduler.subprocess.run")
    def test_exists(self, run):
        run.return_value = _completed(stdout="bt-timer-7-ab12cd34.timer loaded active waiting\n")
        self.assertTrue(self.scheduler.exists("7"))
        run.return_value = _completed(stdout="")
        self.assertFalse(self.scheduler.exists("7"))

    @patch("bt.core.scheduler.subprocess.run")
    def test_running_handler_counts_as_pending(self, run):
        # Timer unit already gone, its service still starting the handler
        run.return_value = _completed(stdout="bt-timer-7-ab12cd34.service loaded activating start\n")
        self.assertTrue(self.scheduler.exists("7"))
        query = run.call_args.args[0]
        self.assertEqual(query[-1], "bt-timer-7-*")
        self.assertIn("--state=active,activating", query)

    @patch("bt.core.scheduler.subprocess.run")
    def test_disarm_with_nothing_loaded(self, run):
        run.return_value = _completed()
        self.assertTrue(self.scheduler.disarm("7"))


class TestWindowsTaskScheduler(unittest.TestCase):

    def setUp(self):
        self.scheduler = WindowsTaskScheduler()

    @patch("bt.core.scheduler.subprocess.run")
    def test_arm_registers_task(self, run):
        run.return_value = _completed()
        self.assertTrue(self.scheduler.arm("7", local_now(), ["C:\\Python\\pythonw.exe", "-m", "bt", "fire", "7"]))
        script = run.call_args_list[1].args[0][-1]
        self.assertIn("Register-ScheduledTask", script)
        self.assertIn("'bt-7-", script)
        self.assertIn("'C:\\Python\\pythonw.exe'", script)
        self.assertIn("'-m bt fire 7'", script)

    @patch("bt.core.scheduler.subprocess.run")
    def test_exists_needs_a_next_run(self, run):
        run.return_value = _completed(stdout="Ready|3/1/2026 9:01:00 AM\r\n")
        self.assertTrue(self.scheduler.exists("7"))
        run.return_value = _completed(stdout="")
        self.assertFalse(self.scheduler.exists("7"))

    @patch("bt.core.scheduler.subprocess.run")
    def test_spent_task_is_not_pending(self, run):
        # A one-time task that already fired stays Ready with no next run
        run.return_value = _completed(stdout="Ready|\r\n")
        self.assertFalse(self.scheduler.exists("7"))
        run.return_value = _completed(stdout="Disabled|\r\nReady|\r\n")
        self.assertFalse(self.scheduler.exists("7"))

    @patch("bt.core.scheduler.subprocess.run")
    def test_running_task_counts_as_pending(self, run):
        run.return_value = _completed(stdout="Ready|\r\nRunning|\r\n")
        self.assertTrue(self.scheduler.exists("7"))

    @patch("bt.core.scheduler.subprocess.run")
    def test_garbage_output_is_soft(self, run):
        run.return_value = _completed(stdout="what")
        self.assertFalse(self.scheduler.exists("7"))


class TestNullScheduler(unittest.TestCase):

    def test_never_arms(self):
        scheduler = NullScheduler()
        self.assertFalse(scheduler.arm("1", local_now(), HANDLER))
        self.assertTrue(scheduler.disarm("1"))
        self.assertFalse(scheduler.exists("1"))


class TestBuildScheduler(unittest.TestCase):

    def test_explicit_choices(self):
        self.assertIsInstance(build_scheduler("systemd"), SystemdScheduler)
        self.assertIsInstance(build_scheduler("windows"), WindowsTaskScheduler)
        self.assertIsInstance(build_scheduler("none"), NullScheduler)

    @patch("bt.core.scheduler.sys.platform", "linux")
    @patch("bt.core.scheduler.shutil.which", return_value="/usr/bin/systemd-run")
    def test_auto_prefers_systemd_on_linux(self, which):
        self.assertIsInstance(build_scheduler("auto"), SystemdScheduler)

    @patch("bt.core.scheduler.sys.platform", "linux")
    @patch("bt.core.scheduler.shutil.which", return_value=None)
    def test_auto_falls_back_to_null(self, which):
        self.assertIsInstance(build_scheduler("auto"), NullScheduler)

    @patch("bt.core.scheduler.sys.platform", "win32")
    def test_auto_on_windows(self):
        self.assertIsInstance(build_scheduler("auto"), WindowsTaskScheduler)


if __name__ == "__main__":
    unittest.main()
