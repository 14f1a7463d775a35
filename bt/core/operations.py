"""Timer operations: start, pause, resume, remove, clear and listing.

Every operation is one read-modify-write cycle over the whole store. Input and
state problems raise a :class:`~bt.core.errors.TimerError` before anything is
touched. Wake-ups are cancelled before the store is mutated, and re-armed only
after the new state has been saved.
"""

from datetime import timedelta
from bt.common.logger import log
from bt.core import parser
from bt.core.errors import InvalidInputError, InvalidStateError, TimerNotFoundError
from bt.core.sync import reconcile
from bt.core.timer_state import (
    Timer, SequenceInfo, RUNNING, PAUSED, COMPLETED, LOST, ACTIVE_STATES, DONE_STATES,
)


class TimerService:

    def __init__(self, ctx):
        self.ctx = ctx

    @property
    def store(self):
        return self.ctx.store

    @property
    def scheduler(self):
        return self.ctx.scheduler

    # Arms the wake-up for a Running timer's current EndTime. Returns whether the OS accepted it.
    def _arm(self, timer):
        return self.scheduler.arm(timer.id, timer.end_dt, self.ctx.handler_command(timer.id))

    @staticmethod
    def _require_id(timer_id):
        timer_id = (timer_id or "").strip()
        if not timer_id:
            raise InvalidInputError("A timer ID is required.")
        return timer_id

    @staticmethod
    def _find(timers, timer_id):
        for timer in timers:
            if timer.id == timer_id:
                return timer
        raise TimerNotFoundError(timer_id)

    #region === Starting ===

    # Starts a timer from either a duration ("25m") or a sequence pattern / preset name. Returns (timer, armed).
    def start(self, spec, message=None, repeat=1):
        spec = (spec or "").strip()
        if not spec:
            raise InvalidInputError("A duration or sequence pattern is required.")

        if spec not in self.ctx.presets:
            seconds = parser.parse_duration(spec)
            if seconds > 0:
                return self.start_simple(spec, message, repeat)
        if repeat not in (None, 1, "1"):
            log.info(f"Ignoring repeat count {repeat} for sequence '{spec}', sequences run once")
        return self.start_sequence(spec, message)

    def start_simple(self, duration, message=None, repeat=1):
        seconds = parser.parse_duration(duration)
        if seconds <= 0:
            raise InvalidInputError(f"Invalid time format: '{duration}'.")
        try:
            repeat_total = max(1, int(repeat))
        except (TypeError, ValueError):
            raise InvalidInputError(f"Invalid repeat count: '{repeat}'.") from None

        now = self.ctx.now()
        timers = self.store.load(force=True)
        timer = Timer(
            id=self.store.next_id(timers, self.ctx.settings.get("id_mode", "sequential")),
            duration=duration,
            seconds=seconds,
            message=message or self.ctx.settings.get("default_message", "Timer complete"),
            start_time=now.isoformat(),
            end_time=(now + timedelta(seconds=seconds)).isoformat(),
            state=RUNNING,
            repeat_total=repeat_total,
            repeat_remaining=repeat_total - 1,
            current_run=1,
        )
        timers.append(timer)
        self.store.save(timers)
        log.info(f"Started timer '{timer.id}' for {seconds}s ({repeat_total} runs): {timer.message}")
        return timer, self._arm(timer)

    def start_sequence(self, pattern, message=None):
        phases = parser.parse_sequence(pattern, self.ctx.presets)
        if not phases:
            raise InvalidInputError(f"Invalid time format: '{pattern}'.")
        summary = parser.summarize(phases)
        first = phases[0]

        now = self.ctx.now()
        timers = self.store.load(force=True)
        timer = Timer(
            id=self.store.next_id(timers, self.ctx.settings.get("id_mode", "sequential")),
            duration=first.duration,
            seconds=first.seconds,
            message=message or self.ctx.settings.get("default_message", "Timer complete"),
            start_time=now.isoformat(),
            end_time=(now + timedelta(seconds=first.seconds)).isoformat(),
            state=RUNNING,
            repeat_total=1,
            repeat_remaining=0,
            current_run=1,
            sequence=SequenceInfo(
                pattern=pattern,
                phases=tuple(phases),
                current_phase=0,
                phase_label=first.label,
                total_seconds=summary.total_seconds,
            ),
        )
        timers.append(timer)
        self.store.save(timers)
        log.info(f"Started sequence timer '{timer.id}' ({summary.phase_count} phases, {summary.total_seconds}s): {pattern}")
        return timer, self._arm(timer)

    #endregion === Starting ===

    #region === Pause / Resume ===

    # Running -> Paused, snapshotting what's left of the current interval (current phase only, for sequences).
    def _pause_one(self, timer, now):
        self.scheduler.disarm(timer.id)
        timer.remaining_seconds = timer.seconds_left(now)
        timer.state = PAUSED
        log.info(f"Paused timer '{timer.id}' with {timer.remaining_seconds}s remaining")

    # Paused/Lost -> Running, or straight to Completed when nothing is left. Returns True if it needs arming.
    def _resume_one(self, timer, now):
        remaining = timer.remaining_seconds or 0
        if remaining <= 0:
            self.scheduler.disarm(timer.id)
            timer.state = COMPLETED
            timer.remaining_seconds = None
            if timer.sequence is not None:
                timer.sequence.current_phase = timer.sequence.total_phases
            log.info(f"Timer '{timer.id}' had no time left on resume, marked Completed")
            return False
        timer.run_from(now, remaining)
        log.info(f"Resumed timer '{timer.id}' with {remaining}s remaining")
        return True

    def pause(self, timer_id):
        timer_id = self._require_id(timer_id)
        if timer_id == "all":
            return self.pause_all()

        timers = self.store.load(force=True)
        timer = self._find(timers, timer_id)
        if timer.state != RUNNING:
            raise InvalidStateError(timer.id, timer.state, "pause")
        self._pause_one(timer, self.ctx.now())
        self.store.save(timers)
        return timer

    def pause_all(self):
        timers = self.store.load(force=True)
        now = self.ctx.now()
        count = 0
        for timer in timers:
            if timer.state == RUNNING:
                self._pause_one(timer, now)
                count += 1
        if count:
            self.store.save(timers)
        return count

    def resume(self, timer_id):
        timer_id = self._require_id(timer_id)
        if timer_id == "all":
            return self.resume_all()

        timers = self.store.load(force=True)
        timer = self._find(timers, timer_id)
        if timer.state not in (PAUSED, LOST):
            raise InvalidStateError(timer.id, timer.state, "resume")
        needs_arm = self._resume_one(timer, self.ctx.now())
        self.store.save(timers)
        if needs_arm:
            self._arm(timer)
        return timer

    def resume_all(self):
        timers = self.store.load(force=True)
        now = self.ctx.now()
        to_arm = []
        count = 0
        for timer in timers:
            if timer.state in (PAUSED, LOST):
                if self._resume_one(timer, now):
                    to_arm.append(timer)
                count += 1
        if count:
            self.store.save(timers)
        for timer in to_arm:
            self._arm(timer)
        return count

    #endregion === Pause / Resume ===

    #region === Removing ===

    # Removes one timer by id, every timer ("all"), or only finished ones ("done"). Returns how many were removed.
    def remove(self, target):
        target = self._require_id(target)
        if target == "done":
            return self.clear()

        timers = self.store.load(force=True)
        if target == "all":
            for timer in timers:
                self.scheduler.disarm(timer.id)
            self.store.save([])
            log.info(f"Removed all {len(timers)} timers")
            return len(timers)

        timer = self._find(timers, target)
        self.scheduler.disarm(timer.id)
        self.store.save([t for t in timers if t.id != timer.id])
        log.info(f"Removed timer '{timer.id}'")
        return 1

    # Drops every Completed and Lost timer, keeping the rest in order.
    def clear(self):
        timers = self.store.load(force=True)
        kept = [timer for timer in timers if timer.state not in DONE_STATES]
        removed = len(timers) - len(kept)
        if removed:
            for timer in timers:
                if timer.state in DONE_STATES:
                    self.scheduler.disarm(timer.id)
            self.store.save(kept)
            log.info(f"Cleared {removed} finished timers")
        return removed

    #endregion === Removing ===

    # Reconciled view of the store. Completed timers are left out unless include_completed.
    def list_timers(self, include_completed=False):
        timers = reconcile(self.ctx)
        if include_completed:
            return timers
        return [timer for timer in timers if timer.state in ACTIVE_STATES]

    def get(self, timer_id):
        timer_id = self._require_id(timer_id)
        return self._find(reconcile(self.ctx), timer_id)
