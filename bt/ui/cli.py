import argparse
import logging
import sys
from bt import __version__
from bt.common.logger import log, enable_console
from bt.core import config, parser
from bt.core.context import TimerContext
from bt.core.errors import TimerError, InvalidInputError
from bt.core.fire import handle_fire
from bt.core.operations import TimerService
from bt.core.timer_state import COMPLETED
from bt.ui import render
from bt.ui.countdown import countdown
from bt.ui.watch import watch


def build_parser():
    ap = argparse.ArgumentParser(prog="bt", description="Background countdown timers that keep going after the terminal closes.")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("-v", "--verbose", action="store_true", help="Echo log output to the console.")
    sub = ap.add_subparsers(dest="command", metavar="COMMAND")

    start = sub.add_parser("start", help="Start a timer from a duration, sequence pattern or preset.")
    start.add_argument("spec", help='Duration ("25m", "1h30m", "90"), pattern ("(25m work, 5m rest)x4") or preset name.')
    start.add_argument("message", nargs="?", default=None, help="Message shown when the timer completes.")
    start.add_argument("repeat", nargs="?", type=int, default=1, help="How many times to run a simple timer.")

    lst = sub.add_parser("list", help="Show timers.")
    lst.add_argument("-a", "--all", action="store_true", help="Include completed timers.")
    lst.add_argument("-w", "--watch", action="store_true", help="Keep refreshing until q is pressed.")
    lst.add_argument("--interval", type=float, default=None, help="Watch refresh interval in seconds.")

    for name, help_text in (("pause", "Pause a running timer."), ("resume", "Resume a paused or lost timer.")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("id", nargs="?", default=None, help='Timer ID, or "all".')

    remove = sub.add_parser("remove", help="Remove timers.")
    remove.add_argument("id", nargs="?", default=None, help='Timer ID, "all", or "done" (completed and lost).')

    sub.add_parser("clear", help="Remove completed and lost timers.")

    presets = sub.add_parser("presets", help="List or edit sequence presets.")
    presets.add_argument("--add", nargs=2, metavar=("NAME", "PATTERN"), help="Add or replace a preset.")
    presets.add_argument("--remove", metavar="NAME", help="Delete a preset.")

    cd = sub.add_parser("countdown", help="Run a blocking countdown in this terminal.")
    cd.add_argument("duration")
    cd.add_argument("message", nargs="?", default=None)

    # Invoked by the OS scheduler, not by people.
    fire = sub.add_parser("fire")
    fire.add_argument("id")
    return ap


# The notifier is only built when something actually needs to show a notification, which keeps Qt out of every
# other command.
def _default_notifier(ctx):
    from bt.ui.notify import Notifier
    return Notifier(sound=ctx.settings.get("sound", True))


#region === Commands ===

def _cmd_start(service, args, out):
    timer, armed = service.start(args.spec, args.message, args.repeat)
    print(render.render_started(timer, armed), file=out)


def _cmd_list(service, args, out):
    ctx = service.ctx
    bar_width = ctx.settings.get("bar_width", 30)
    if args.watch:
        interval = args.interval or ctx.settings.get("watch_interval", 1.0)
        watch(service, include_completed=args.all, interval=interval, bar_width=bar_width, out=out)
        return
    timers = service.list_timers(include_completed=args.all)
    print(render.render_table(timers, ctx.now(), bar_width), file=out)


def _cmd_pause(service, args, out):
    result = service.pause(args.id)
    if isinstance(result, int):
        print(f"Paused {result} timer(s).", file=out)
    else:
        print(f"Paused timer {result.id} with {result.remaining_seconds}s remaining.", file=out)


def _cmd_resume(service, args, out):
    result = service.resume(args.id)
    if isinstance(result, int):
        print(f"Resumed {result} timer(s).", file=out)
    elif result.state == COMPLETED:
        print(f"Timer {result.id} had no time left and is now Completed.", file=out)
    else:
        print(f"Resumed timer {result.id}.", file=out)


def _cmd_remove(service, args, out):
    removed = service.remove(args.id)
    print(f"Removed {removed} timer(s).", file=out)


def _cmd_clear(service, args, out):
    removed = service.clear()
    print(f"Cleared {removed} finished timer(s).", file=out)


def _cmd_presets(service, args, out):
    ctx = service.ctx
    presets = ctx.settings.setdefault("presets", {})
    if args.add:
        name, pattern = args.add
        if not parser.parse_sequence(pattern):
            raise InvalidInputError(f"Pattern '{pattern}' has no phases.")
        presets[name] = pattern
        config.save_settings(ctx.settings, ctx.paths.settings)
        print(f"Saved preset '{name}'.", file=out)
        return
    if args.remove:
        if args.remove not in presets:
            raise InvalidInputError(f"No preset named '{args.remove}'.")
        del presets[args.remove]
        config.save_settings(ctx.settings, ctx.paths.settings)
        print(f"Removed preset '{args.remove}'.", file=out)
        return
    print(render.render_presets(presets), file=out)


def _cmd_countdown(service, args, out, notifier_factory):
    ctx = service.ctx
    message = args.message or ctx.settings.get("default_message", "Timer complete")
    try:
        countdown(args.duration, message, notifier=notifier_factory(ctx),
                  bar_width=ctx.settings.get("bar_width", 30), out=out)
    except KeyboardInterrupt:
        print("\nCountdown cancelled.", file=out)


def _cmd_fire(service, args, out, notifier_factory):
    handle_fire(service.ctx, args.id, notifier_factory(service.ctx))

#endregion === Commands ===

_COMMANDS = {
    "start": _cmd_start,
    "list": _cmd_list,
    "pause": _cmd_pause,
    "resume": _cmd_resume,
    "remove": _cmd_remove,
    "clear": _cmd_clear,
    "presets": _cmd_presets,
}


def main(argv=None, ctx=None, notifier_factory=None, out=None):
    out = out or sys.stdout
    args = build_parser().parse_args(argv)
    if args.verbose:
        enable_console(log, logging.DEBUG)
    if not args.command:
        build_parser().print_help(out)
        return 0

    ctx = ctx or TimerContext.build()
    notifier_factory = notifier_factory or _default_notifier
    service = TimerService(ctx)
    log.debug(f"Running command '{args.command}' with scheduler '{ctx.scheduler.name}'")

    try:
        if args.command == "countdown":
            _cmd_countdown(service, args, out, notifier_factory)
        elif args.command == "fire":
            _cmd_fire(service, args, out, notifier_factory)
        else:
            _COMMANDS[args.command](service, args, out)
    except TimerError as e:
        log.info(f"Command '{args.command}' refused: {e}")
        print(f"Error: {e}", file=out)
        return 1
    finally:
        if ctx.store.corruption_detected:
            print(f"Warning: the timer file '{ctx.paths.store}' was unreadable and has been treated as empty.", file=sys.stderr)
    return 0
