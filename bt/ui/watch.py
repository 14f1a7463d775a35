import contextlib
import sys
import time
from bt.common.logger import log
from bt.ui.render import render_table

POLL_INTERVAL = 0.1
QUIT_KEYS = ("q", "Q", "\x1b")
CLEAR_SCREEN = "\033[2J\033[H"


#region === Keyboard polling ===

if sys.platform == "win32":
    import msvcrt

    @contextlib.contextmanager
    def _raw_keys():
        yield

    def _read_key():
        if msvcrt.kbhit():
            return msvcrt.getwch()
        return None
else:
    import select
    import termios
    import tty

    # Puts the terminal in cbreak mode for the duration of the watch, so single keys arrive without Enter.
    @contextlib.contextmanager
    def _raw_keys():
        if not sys.stdin.isatty():
            yield
            return
        fd = sys.stdin.fileno()
        old = termios.tcgetattr(fd)
        try:
            tty.setcbreak(fd)
            yield
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old)

    def _read_key():
        if not sys.stdin.isatty():
            return None
        ready, _, _ = select.select([sys.stdin], [], [], 0)
        if ready:
            return sys.stdin.read(1)
        return None

#endregion === Keyboard polling ===

# Sleeps for `seconds` in small steps, returning early (True) if a quit key was pressed.
def wait_for_quit(seconds, read_key=None, sleep=time.sleep):
    read_key = read_key or _read_key
    deadline = time.monotonic() + seconds
    while True:
        if read_key() in QUIT_KEYS:
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        sleep(min(POLL_INTERVAL, remaining))


# Live view: reconcile, redraw, wait, repeat until q/Esc/Ctrl+C.
def watch(service, include_completed=False, interval=1.0, bar_width=30, out=None):
    out = out or sys.stdout
    log.info(f"Entering watch mode (interval {interval}s)")
    try:
        with _raw_keys():
            while True:
                timers = service.list_timers(include_completed=include_completed)
                now = service.ctx.now()
                out.write(CLEAR_SCREEN)
                out.write(render_table(timers, now, bar_width))
                out.write(f"\n\n{now:%H:%M:%S}  press q to quit\n")
                out.flush()
                if wait_for_quit(interval):
                    break
    except KeyboardInterrupt:
        pass
    log.info("Left watch mode")
