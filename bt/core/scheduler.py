"""Scheduling adapter: one-shot wake-ups that outlive the process that armed them.

Each backend registers an OS-level job that runs the firing handler
(``python -m bt fire <id>``) at a given time. Job names carry a fresh token
per arm, so a handler can re-arm its own timer while its job is still running.

The public methods never raise. Failures are logged and reported through the
return value, and the caller carries on; reconciliation later catches timers
whose wake-up never got registered.
"""

import os
import shutil
import subprocess
import sys
import secrets
from datetime import timezone
from bt.common.logger import log
from bt.core.errors import SchedulerError
from bt.util import local_now

SUBPROCESS_TIMEOUT = 15
# Passed through to the fire handler so it finds the same store and can reach the desktop session.
PASSTHROUGH_ENV = ("BT_CONFIG_DIR", "BT_STATE_DIR", "DISPLAY", "WAYLAND_DISPLAY", "XDG_RUNTIME_DIR", "DBUS_SESSION_BUS_ADDRESS")


class Scheduler:
    name = "base"

    # Registers a wake-up for timer_id at fire_at, replacing any existing one. Returns True if it was registered.
    def arm(self, timer_id, fire_at, handler):
        self.disarm(timer_id)
        try:
            self._arm(timer_id, fire_at, handler)
        except SchedulerError as e:
            log.warning(f"Could not arm wake-up for timer '{timer_id}' with {self.name}: {e}")
            return False
        log.info(f"Armed wake-up for timer '{timer_id}' at {fire_at.isoformat()} with {self.name}")
        return True

    # Cancels every pending wake-up for timer_id. Nothing to cancel counts as success.
    def disarm(self, timer_id):
        try:
            self._disarm(timer_id)
        except SchedulerError as e:
            log.warning(f"Could not disarm wake-up for timer '{timer_id}' with {self.name}: {e}")
            return False
        log.debug(f"Disarmed wake-ups for timer '{timer_id}' with {self.name}")
        return True

    # Whether a wake-up is still pending for timer_id. A failed query reports False.
    def exists(self, timer_id):
        try:
            return self._exists(timer_id)
        except SchedulerError as e:
            log.warning(f"Could not query wake-up for timer '{timer_id}' with {self.name}: {e}")
            return False

    def _arm(self, timer_id, fire_at, handler):
        raise NotImplementedError

    def _disarm(self, timer_id):
        raise NotImplementedError

    def _exists(self, timer_id):
        raise NotImplementedError


# Runs a scheduler command, turning launch failures and timeouts into SchedulerError.
def _run(args):
    try:
        return subprocess.run(args, capture_output=True, text=True, timeout=SUBPROCESS_TIMEOUT, check=False)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise SchedulerError(f"{args[0]} failed to run: {e}") from e


# Wall-clock trigger for systemd-run. OnCalendar keeps counting through suspend, OnActiveSec doesn't, so --on-active
# is only used for a fire time that has already arrived.
def _systemd_trigger(fire_at):
    if fire_at <= local_now():
        return "--on-active=1s"
    return f"--on-calendar={fire_at.astimezone(timezone.utc):%Y-%m-%d %H:%M:%S} UTC"


#region === systemd ===

# Transient `systemd-run --user` timers. The timer unit is dropped as soon as it elapses and its service unit runs the
# handler, so a pending wake-up is either a waiting timer unit or a service that hasn't finished yet.
class SystemdScheduler(Scheduler):
    name = "systemd"
    prefix = "bt-timer"

    def _pattern(self, timer_id, suffix=""):
        return f"{self.prefix}-{timer_id}-*{suffix}"

    def _arm(self, timer_id, fire_at, handler):
        unit = f"{self.prefix}-{timer_id}-{secrets.token_hex(4)}"
        args = [
            "systemd-run", "--user", "--quiet", "--collect",
            f"--unit={unit}",
            _systemd_trigger(fire_at),
            "--timer-property=AccuracySec=1s",
            "--timer-property=RemainAfterElapsed=no",
            *(f"--setenv={name}={os.environ[name]}" for name in PASSTHROUGH_ENV if os.environ.get(name)),
            *handler,
        ]
        result = _run(args)
        if result.returncode != 0:
            raise SchedulerError(result.stderr.strip() or f"systemd-run exited with {result.returncode}")

    def _disarm(self, timer_id):
        # Timer units only, the handler re-arms from inside its own service unit.
        result = _run(["systemctl", "--user", "stop", self._pattern(timer_id, ".timer")])
        # No matching units exits cleanly, only a failure with an error message counts.
        if result.returncode != 0 and result.stderr.strip():
            raise SchedulerError(result.stderr.strip())

    def _exists(self, timer_id):
        result = _run([
            "systemctl", "--user", "list-units", "--plain", "--no-legend",
            "--state=active,activating", self._pattern(timer_id),
        ])
        if result.returncode != 0:
            raise SchedulerError(result.stderr.strip() or f"systemctl exited with {result.returncode}")
        return bool(result.stdout.strip())

#endregion === systemd ===

#region === Windows ===

# Windows Task Scheduler through PowerShell's ScheduledTasks module, one-time triggers under \BackgroundTimer\.
class WindowsTaskScheduler(Scheduler):
    name = "windows"
    task_path = "\\BackgroundTimer\\"
    prefix = "bt"

    def _powershell(self, script):
        result = _run(["powershell", "-NoProfile", "-NonInteractive", "-Command", script])
        if result.returncode != 0:
            raise SchedulerError(result.stderr.strip() or f"powershell exited with {result.returncode}")
        return result.stdout

    @staticmethod
    def _quote(value):
        return "'" + str(value).replace("'", "''") + "'"

    def _arm(self, timer_id, fire_at, handler):
        task = f"{self.prefix}-{timer_id}-{secrets.token_hex(4)}"
        executable, *arguments = handler
        argument_string = subprocess.list2cmdline(arguments)
        script = (
            f"$action = New-ScheduledTaskAction -Execute {self._quote(executable)} -Argument {self._quote(argument_string)}; "
            f"$trigger = New-ScheduledTaskTrigger -Once -At ([datetime]::Parse({self._quote(fire_at.isoformat())})); "
            "$settings = New-ScheduledTaskSettingsSet -AllowStartIfOnBatteries -DontStopIfGoingOnBatteries -StartWhenAvailable; "
            f"Register-ScheduledTask -TaskPath {self._quote(self.task_path)} -TaskName {self._quote(task)} "
            "-Action $action -Trigger $trigger -Settings $settings -Force | Out-Null"
        )
        self._powershell(script)

    def _disarm(self, timer_id):
        self._powershell(
            f"Get-ScheduledTask -TaskPath {self._quote(self.task_path)} -TaskName {self._quote(f'{self.prefix}-{timer_id}-*')} "
            "-ErrorAction SilentlyContinue | Unregister-ScheduledTask -Confirm:$false"
        )

    # One "State|NextRunTime" line per task. A one-time task stays registered as Ready after it has fired, so only a
    # task that is running its handler or still has a next run counts.
    def _exists(self, timer_id):
        output = self._powershell(
            f"Get-ScheduledTask -TaskPath {self._quote(self.task_path)} -TaskName {self._quote(f'{self.prefix}-{timer_id}-*')} "
            "-ErrorAction SilentlyContinue | ForEach-Object { \"$($_.State)|$(($_ | Get-ScheduledTaskInfo).NextRunTime)\" }"
        )
        for line in output.splitlines():
            state, _, next_run = line.strip().partition("|")
            if state in ("Running", "Queued"):
                return True
            if state == "Ready" and next_run.strip():
                return True
        return False

#endregion === Windows ===

# Registers nothing. Timers still get created and listed, and reconciliation marks them Lost once they're due.
class NullScheduler(Scheduler):
    name = "none"

    def _arm(self, timer_id, fire_at, handler):
        raise SchedulerError("no OS scheduler available")

    def _disarm(self, timer_id):
        pass

    def _exists(self, timer_id):
        return False


# Picks the scheduler backend for the "scheduler" setting.
def build_scheduler(kind="auto"):
    if kind == "systemd":
        return SystemdScheduler()
    if kind == "windows":
        return WindowsTaskScheduler()
    if kind == "none":
        return NullScheduler()

    if sys.platform == "win32":
        return WindowsTaskScheduler()
    if shutil.which("systemd-run"):
        return SystemdScheduler()
    log.warning("No supported OS scheduler found, timers will not fire on their own.")
    return NullScheduler()
