from bt.core import parser
from bt.core.timer_state import RUNNING, PAUSED, COMPLETED, LOST
from bt.util import format_time, format_duration

FILLED = "█"
EMPTY = "░"

_STATE_MARKERS = {
    RUNNING: ">",
    PAUSED: "=",
    COMPLETED: "✓",
    LOST: "?",
}


def progress_bar(fraction, width=30):
    """Render ``fraction`` (clamped to 0..1) as a fixed-width bar."""
    fraction = min(1.0, max(0.0, fraction))
    filled = int(round(fraction * width))
    return FILLED * filled + EMPTY * (width - filled)


# Fraction of the current interval (phase, for sequences) that has elapsed.
def phase_fraction(timer, now):
    if timer.state == COMPLETED:
        return 1.0
    if timer.seconds <= 0:
        return 0.0
    return 1.0 - timer.seconds_left(now) / timer.seconds


# Fraction of the whole sequence that has elapsed, based on TotalSeconds.
def sequence_fraction(timer, now):
    sequence = timer.sequence
    if timer.state == COMPLETED or sequence.total_seconds <= 0:
        return 1.0
    done_before = sum(phase.seconds for phase in sequence.phases[:sequence.current_phase])
    done = done_before + (timer.seconds - timer.seconds_left(now))
    return done / sequence.total_seconds


def _label(timer):
    if timer.sequence is not None:
        sequence = timer.sequence
        shown_phase = min(sequence.current_phase + 1, sequence.total_phases)
        return f"{sequence.phase_label or timer.message} [phase {shown_phase}/{sequence.total_phases}]"
    if timer.repeat_total > 1:
        return f"{timer.message} [run {timer.current_run}/{timer.repeat_total}]"
    return timer.message


# One listing row: id, state, time left, bar and label.
def render_timer(timer, now, bar_width=30):
    marker = _STATE_MARKERS.get(timer.state, " ")
    left = format_time(timer.seconds_left(now))
    bar = progress_bar(phase_fraction(timer, now), bar_width)
    line = f"{marker} {timer.id:>4}  {timer.state:<9} {left}  {bar}  {_label(timer)}"
    if timer.sequence is not None and timer.state != COMPLETED:
        total_bar = progress_bar(sequence_fraction(timer, now), bar_width)
        remaining_total = timer.seconds_left(now) + timer.sequence.seconds_after_current
        line += f"\n{'':>26}{format_time(remaining_total)}  {total_bar}  total"
    return line


def render_table(timers, now, bar_width=30):
    if not timers:
        return "No timers."
    header = f"  {'ID':>4}  {'STATE':<9} {'LEFT':<8}  {'PROGRESS':<{bar_width}}  LABEL"
    rows = [render_timer(timer, now, bar_width) for timer in timers]
    return "\n".join([header, *rows])


def render_started(timer, armed):
    if timer.sequence is not None:
        text = f"Started sequence timer {timer.id}: {parser.describe(timer.sequence.phases)}"
        text += f"\n  First phase: {timer.sequence.phase_label} ({timer.duration})"
    else:
        text = f"Started timer {timer.id}: {format_duration(timer.seconds)}"
        if timer.repeat_total > 1:
            text += f" x{timer.repeat_total}"
        text += f" - {timer.message}"
    if not armed:
        text += "\n  Warning: could not schedule a wake-up, this timer will show as Lost once it's due."
    return text


def render_presets(presets):
    if not presets:
        return "No presets."
    width = max(len(name) for name in presets)
    lines = []
    for name, pattern in presets.items():
        phases = parser.parse_sequence(pattern)
        summary = parser.summarize(phases)
        lines.append(f"{name:<{width}}  {format_duration(summary.total_seconds):>8}  {summary.phase_count:>3} phases  {pattern}")
    return "\n".join(lines)
