"""Fakes shared by the test suites: scheduler, clock, notifier and a context builder."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from bt.common.setup import ProjectPaths
from bt.core.config import build_default_settings
from bt.core.context import TimerContext
from bt.core.errors import SchedulerError
from bt.core.scheduler import Scheduler


class FakeScheduler(Scheduler):
    """Keeps wake-ups in a dict instead of the OS scheduler."""
    name = "fake"

    def __init__(self):
        self.armed = {}      # timer_id -> fire_at
        self.handlers = {}   # timer_id -> argv
        self.calls = []
        self.fail_arm = False

    def _arm(self, timer_id, fire_at, handler):
        self.calls.append(("arm", timer_id))
        if self.fail_arm:
            raise SchedulerError("refused")
        self.armed[timer_id] = fire_at
        self.handlers[timer_id] = handler

    def _disarm(self, timer_id):
        self.calls.append(("disarm", timer_id))
        self.armed.pop(timer_id, None)
        self.handlers.pop(timer_id, None)

    def _exists(self, timer_id):
        return timer_id in self.armed


class FixedClock:
    """A settable clock; call it to get the current fake time."""

    def __init__(self, start=None):
        self.current = start or datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone(timedelta(hours=1)))

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += timedelta(seconds=seconds)
        return self.current


class RecordingNotifier:

    def __init__(self):
        self.notifications = []

    def notify(self, title, message, final=False):
        self.notifications.append((title, message, final))


def make_paths(tmpdir):
    root = Path(tmpdir)
    return ProjectPaths(
        config=root,
        state=root,
        logs=root,
        store=root / "timers.json",
        settings=root / "settings.json",
    )


def make_context(tmpdir, scheduler=None, clock=None, **settings_overrides):
    settings = build_default_settings()
    settings.update(settings_overrides)
    return TimerContext.build(
        paths=make_paths(tmpdir),
        settings=settings,
        scheduler=scheduler or FakeScheduler(),
        clock=clock or FixedClock(),
    )
