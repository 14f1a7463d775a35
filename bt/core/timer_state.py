from dataclasses import dataclass, field, replace
from datetime import timedelta
from bt.util import parse_iso

RUNNING = "Running"
PAUSED = "Paused"
COMPLETED = "Completed"
LOST = "Lost"
STATES = (RUNNING, PAUSED, COMPLETED, LOST)

# States that still have work left, as opposed to Completed.
ACTIVE_STATES = (RUNNING, PAUSED, LOST)
# States removed by "remove done" / "clear".
DONE_STATES = (COMPLETED, LOST)


# One timed segment of a sequence. Built once when the pattern is parsed and never changed afterwards.
@dataclass(frozen=True)
class Phase:
    seconds: int
    label: str
    duration: str
    loop_id: str | None = None
    loop_iteration: int | None = None
    loop_total: int | None = None

    def to_dict(self):
        return {
            "Seconds": int(self.seconds),
            "Label": self.label,
            "Duration": self.duration,
            "LoopId": self.loop_id,
            "LoopIteration": _int_or_none(self.loop_iteration),
            "LoopTotal": _int_or_none(self.loop_total),
        }

    @staticmethod
    def from_dict(data):
        return Phase(
            seconds=int(data["Seconds"]),
            label=str(data.get("Label") or "Timer"),
            duration=str(data.get("Duration") or f"{int(data['Seconds'])}s"),
            loop_id=data.get("LoopId"),
            loop_iteration=_int_or_none(data.get("LoopIteration")),
            loop_total=_int_or_none(data.get("LoopTotal")),
        )


# The sequence-only part of a timer. A Timer either has one of these (and progresses by phase) or doesn't (and
# progresses by simple repeats).
@dataclass
class SequenceInfo:
    pattern: str
    phases: tuple
    current_phase: int = 0
    phase_label: str = ""
    total_seconds: int = 0

    @property
    def total_phases(self):
        return len(self.phases)

    @property
    def is_last_phase(self):
        return self.current_phase >= self.total_phases - 1

    # Seconds of every phase after the current one, for aggregate progress.
    @property
    def seconds_after_current(self):
        return sum(phase.seconds for phase in self.phases[self.current_phase + 1:])


@dataclass
class Timer:
    id: str
    duration: str
    seconds: int
    message: str
    start_time: str
    end_time: str
    state: str = RUNNING
    repeat_total: int = 1
    repeat_remaining: int = 0
    current_run: int = 1
    remaining_seconds: int | None = None
    sequence: SequenceInfo | None = field(default=None)

    @property
    def is_sequence(self):
        return self.sequence is not None

    @property
    def start_dt(self):
        return parse_iso(self.start_time)

    @property
    def end_dt(self):
        return parse_iso(self.end_time)

    # Seconds left on the current interval as of `now`. Paused/Lost timers report their snapshot instead of the clock.
    def seconds_left(self, now):
        if self.state in (PAUSED, LOST):
            return max(0, self.remaining_seconds or 0)
        if self.state == COMPLETED:
            return 0
        end = self.end_dt
        if end is None:
            return 0
        return max(0, int((end - now).total_seconds()))

    # Starts a fresh interval of `self.seconds` ending `run_seconds` from now. The start is backdated so that
    # EndTime - StartTime always equals Seconds, which keeps progress bars continuous across pause/resume.
    def run_from(self, now, run_seconds=None):
        run_seconds = self.seconds if run_seconds is None else run_seconds
        end = now + timedelta(seconds=run_seconds)
        self.start_time = (end - timedelta(seconds=self.seconds)).isoformat()
        self.end_time = end.isoformat()
        self.state = RUNNING
        self.remaining_seconds = None

    def copy(self):
        return replace(self, sequence=replace(self.sequence) if self.sequence else None)

    #region === Serialization ===

    # Flattens the timer into the on-disk record. Sequence fields are only written for sequence timers, and
    # RemainingSeconds is written as null rather than defaulted.
    def to_dict(self):
        data = {
            "Id": str(self.id),
            "Duration": self.duration,
            "Seconds": int(self.seconds),
            "Message": self.message,
            "StartTime": self.start_time,
            "EndTime": self.end_time,
            "State": self.state,
            "RepeatTotal": int(self.repeat_total),
            "RepeatRemaining": int(self.repeat_remaining),
            "CurrentRun": int(self.current_run),
            "RemainingSeconds": _int_or_none(self.remaining_seconds),
            "IsSequence": self.is_sequence,
        }
        if self.sequence is not None:
            data.update({
                "SequencePattern": self.sequence.pattern,
                "Phases": [phase.to_dict() for phase in self.sequence.phases],
                "CurrentPhase": int(self.sequence.current_phase),
                "TotalPhases": self.sequence.total_phases,
                "PhaseLabel": self.sequence.phase_label,
                "TotalSeconds": int(self.sequence.total_seconds),
            })
        return data

    # Rebuilds a Timer from its on-disk record. Raises KeyError/TypeError/ValueError on records too broken to use.
    @staticmethod
    def from_dict(data):
        sequence = None
        if data.get("IsSequence"):
            phases = tuple(Phase.from_dict(phase) for phase in data.get("Phases") or [])
            sequence = SequenceInfo(
                pattern=str(data.get("SequencePattern") or ""),
                phases=phases,
                current_phase=int(data.get("CurrentPhase") or 0),
                phase_label=str(data.get("PhaseLabel") or ""),
                total_seconds=int(data.get("TotalSeconds") or sum(phase.seconds for phase in phases)),
            )
        state = data.get("State", RUNNING)
        if state not in STATES:
            raise ValueError(f"unknown timer state {state!r}")
        return Timer(
            id=str(data["Id"]),
            duration=str(data.get("Duration") or ""),
            seconds=int(data["Seconds"]),
            message=str(data.get("Message") or ""),
            start_time=data.get("StartTime"),
            end_time=data.get("EndTime"),
            state=state,
            repeat_total=max(1, int(data.get("RepeatTotal") or 1)),
            repeat_remaining=int(data.get("RepeatRemaining") or 0),
            current_run=int(data.get("CurrentRun") or 1),
            remaining_seconds=_int_or_none(data.get("RemainingSeconds")),
            sequence=sequence,
        )

    #endregion === Serialization ===


# JSON numbers may come back as floats, every count/seconds field is an int on our side.
def _int_or_none(value):
    if value is None:
        return None
    return int(value)
