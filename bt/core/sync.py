from bt.common.logger import log
from bt.core.timer_state import RUNNING, LOST


# Decides what a Running timer with no pending wake-up should become. Returns the RemainingSeconds to snapshot when
# it's Lost, or None when it should stay Running.
def _lost_remaining(timer, now):
    end = timer.end_dt
    if end is None:
        # Can't tell how far along it got, so hand back the whole interval.
        return timer.seconds
    if (end - now).total_seconds() <= 0:
        return 0
    # Still in the future: most likely the wake-up just hasn't shown up in the scheduler yet.
    return None


# Cross-checks every Running timer against the OS scheduler and marks the ones whose wake-up went missing as Lost.
# Changes are persisted before returning the (possibly updated) collection.
def reconcile(ctx):
    timers = ctx.store.load()
    now = ctx.now()

    demotions = {}
    for timer in timers:
        if timer.state != RUNNING:
            continue
        if ctx.scheduler.exists(timer.id):
            continue
        remaining = _lost_remaining(timer, now)
        if remaining is not None:
            demotions[timer.id] = (timer.end_time, remaining)

    if not demotions:
        return timers

    # A fire handler may have re-armed one of these while we were checking. Re-read the file and only demote records
    # that are still on the same interval we looked at.
    timers = ctx.store.load(force=True)
    changed = False
    for timer in timers:
        if timer.id not in demotions or timer.state != RUNNING:
            continue
        end_time, remaining = demotions[timer.id]
        if timer.end_time != end_time:
            log.info(f"Timer '{timer.id}' moved on while reconciling, leaving it Running")
            continue
        timer.state = LOST
        timer.remaining_seconds = remaining
        changed = True
        log.warning(f"Timer '{timer.id}' has no pending wake-up and ended at {end_time}, marked Lost (remaining {remaining}s)")

    if changed:
        ctx.store.save(timers)
    return timers
