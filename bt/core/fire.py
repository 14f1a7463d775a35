"""Firing handler, run by the OS scheduler as ``python -m bt fire <id>``.

This runs in its own process long after (or entirely without) the terminal
that started the timer, so it shares nothing but the store file: it loads the
store, advances or completes its own record, saves, re-arms if there's more
to do, and only then shows the (blocking) notification.
"""

from dataclasses import dataclass
from bt.common.logger import log
from bt.core.timer_state import RUNNING, COMPLETED, LOST
from bt.util import format_duration

# A wake-up this far ahead of EndTime is treated as early (coarse OS scheduler) and simply re-armed.
EARLY_FIRE_TOLERANCE = 5


@dataclass(frozen=True)
class FireOutcome:
    timer_id: str
    action: str          # "repeat", "next_phase", "completed", "rearmed_early", "ignored"
    title: str = ""
    message: str = ""
    final: bool = False


#region === Decisions ===

def _advance_repeat(timer, now):
    finished_run = timer.current_run
    timer.repeat_remaining -= 1
    timer.current_run += 1
    timer.run_from(now)
    return FireOutcome(
        timer.id, "repeat",
        title=f"Timer {timer.id}: run {finished_run} of {timer.repeat_total} done",
        message=f"{timer.message}\n\nNext run ({format_duration(timer.seconds)}) has started.",
    )


def _complete_simple(timer):
    timer.state = COMPLETED
    timer.remaining_seconds = None
    if timer.repeat_total > 1:
        context = f"All {timer.repeat_total} runs complete."
    else:
        context = f"{format_duration(timer.seconds)} elapsed."
    return FireOutcome(timer.id, "completed", title=f"Timer {timer.id} complete",
                       message=f"{timer.message}\n\n{context}", final=True)


def _advance_phase(timer, now):
    sequence = timer.sequence
    finished = sequence.phases[sequence.current_phase]
    sequence.current_phase += 1
    upcoming = sequence.phases[sequence.current_phase]
    sequence.phase_label = upcoming.label
    timer.seconds = upcoming.seconds
    timer.duration = upcoming.duration
    timer.run_from(now)
    return FireOutcome(
        timer.id, "next_phase",
        title=f"Timer {timer.id}: '{finished.label}' done",
        message=(f"Phase {sequence.current_phase} of {sequence.total_phases} complete.\n\n"
                 f"Next: {upcoming.label} ({upcoming.duration})"),
    )


def _complete_sequence(timer):
    sequence = timer.sequence
    finished = sequence.phases[sequence.current_phase] if sequence.phases else None
    timer.state = COMPLETED
    timer.remaining_seconds = None
    sequence.current_phase = sequence.total_phases
    last_label = f"'{finished.label}' done. " if finished else ""
    return FireOutcome(
        timer.id, "completed",
        title=f"Timer {timer.id} complete",
        message=f"{timer.message}\n\n{last_label}All {sequence.total_phases} phases complete ({format_duration(sequence.total_seconds)}).",
        final=True,
    )


# Mutates `timer` for one firing and describes what happened.
def advance(timer, now):
    if timer.sequence is not None:
        if timer.sequence.is_last_phase:
            return _complete_sequence(timer)
        return _advance_phase(timer, now)
    if timer.repeat_remaining > 0:
        return _advance_repeat(timer, now)
    return _complete_simple(timer)


# Reconciliation can catch a timer between its wake-up leaving the scheduler and this handler saving. Such a record is
# Lost with nothing left on an interval that has already ended, and the firing still belongs to it.
def _demoted_in_flight(timer, now):
    if timer.state != LOST or timer.remaining_seconds:
        return False
    end = timer.end_dt
    return end is not None and end <= now

#endregion === Decisions ===

# Handles one firing for timer_id. The notifier is called last, after the store is written and the next wake-up armed.
def handle_fire(ctx, timer_id, notifier=None):
    log.info(f"Wake-up fired for timer '{timer_id}'")
    timers = ctx.store.load(force=True)
    timer = next((t for t in timers if t.id == timer_id), None)

    if timer is None:
        log.warning(f"Timer '{timer_id}' no longer exists, cleaning up its wake-ups")
        ctx.scheduler.disarm(timer_id)
        return FireOutcome(timer_id, "ignored")

    now = ctx.now()
    end = timer.end_dt
    if _demoted_in_flight(timer, now):
        log.info(f"Timer '{timer_id}' was marked Lost while its wake-up was starting, taking it back")
        timer.state = RUNNING
        timer.remaining_seconds = None
    if timer.state != RUNNING:
        log.info(f"Timer '{timer_id}' is {timer.state}, ignoring wake-up")
        return FireOutcome(timer_id, "ignored")

    if end is not None and (end - now).total_seconds() > EARLY_FIRE_TOLERANCE:
        log.info(f"Wake-up for timer '{timer_id}' came early (ends {timer.end_time}), re-arming")
        ctx.scheduler.arm(timer.id, end, ctx.handler_command(timer.id))
        return FireOutcome(timer_id, "rearmed_early")

    outcome = advance(timer, now)
    ctx.store.save(timers)
    log.info(f"Timer '{timer_id}' fired: {outcome.action}")

    if timer.state == RUNNING:
        ctx.scheduler.arm(timer.id, timer.end_dt, ctx.handler_command(timer.id))
    else:
        ctx.scheduler.disarm(timer.id)

    if notifier is not None:
        notifier.notify(outcome.title, outcome.message, final=outcome.final)
    return outcome
