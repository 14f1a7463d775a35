import os
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from bt.common.setup import PATHS, ProjectPaths
from bt.core import config
from bt.core.scheduler import Scheduler, build_scheduler
from bt.core.store import TimerStore
from bt.util import local_now


# Everything a timer operation needs, built once per process and passed around explicitly: where things live, the
# loaded settings, the store handle (and its cache), the OS scheduler and the clock.
@dataclass
class TimerContext:
    paths: ProjectPaths
    settings: dict
    store: TimerStore
    scheduler: Scheduler
    clock: Callable[[], datetime] = field(default=local_now)

    def now(self):
        return self.clock()

    @property
    def presets(self):
        return self.settings.get("presets", {})

    # The argv the OS scheduler runs when a timer's wake-up fires.
    def handler_command(self, timer_id):
        return [_handler_python(), "-m", "bt", "fire", str(timer_id)]

    @staticmethod
    def build(paths=None, settings=None, scheduler=None, clock=None):
        paths = paths or PATHS
        settings = settings if settings is not None else config.load_settings(paths.settings)
        return TimerContext(
            paths=paths,
            settings=settings,
            store=TimerStore(paths.store, cache_ttl=settings.get("cache_ttl", 2.0)),
            scheduler=scheduler or build_scheduler(settings.get("scheduler", "auto")),
            clock=clock or local_now,
        )


# On Windows, prefer pythonw.exe so a firing doesn't flash a console window.
def _handler_python():
    executable = sys.executable
    if sys.platform == "win32" and executable.lower().endswith("python.exe"):
        windowless = executable[:-len("python.exe")] + "pythonw.exe"
        if os.path.exists(windowless):
            return windowless
    return executable
