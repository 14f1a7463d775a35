import sys
import time
from bt.common.logger import log
from bt.core import parser
from bt.core.errors import InvalidInputError
from bt.ui.render import progress_bar
from bt.util import format_time, format_duration


# The old foreground timer: blocks this terminal for the whole duration, redrawing once a second. There's no
# cooperative cancel, Ctrl+C is the only way out. Nothing is stored or scheduled.
def countdown(duration, message, notifier=None, bar_width=30, out=None, sleep=time.sleep, clock=time.monotonic):
    seconds = parser.parse_duration(duration)
    if seconds <= 0:
        raise InvalidInputError(f"Invalid time format: '{duration}'.")
    out = out or sys.stdout
    log.info(f"Foreground countdown for {seconds}s: {message}")

    start = clock()
    while True:
        elapsed = int(clock() - start)
        remaining = max(0, seconds - elapsed)
        bar = progress_bar(1 - remaining / seconds, bar_width)
        out.write(f"\r\033[2K{format_time(remaining)} {bar} {message}")
        out.flush()
        if remaining == 0:
            break
        sleep(1)
    out.write("\n")
    out.flush()

    if notifier is not None:
        notifier.notify("Countdown complete", f"{message}\n\n{format_duration(seconds)} elapsed.", final=True)
    return seconds
