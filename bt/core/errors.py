# Exceptions raised by timer operations. Every TimerError carries a message that's safe to show the user as-is,
# and is always raised before anything has been mutated.

class TimerError(Exception):
    pass

# Bad duration/pattern text, or a missing ID where one is required.
class InvalidInputError(TimerError):
    pass

class TimerNotFoundError(TimerError):

    def __init__(self, timer_id):
        super().__init__(f"No timer with ID '{timer_id}'.")
        self.timer_id = timer_id

# The requested transition isn't allowed from the timer's current state.
class InvalidStateError(TimerError):

    def __init__(self, timer_id, state, action):
        super().__init__(f"Cannot {action} timer '{timer_id}': it is {state}.")
        self.timer_id = timer_id
        self.state = state
        self.action = action

# Raised by scheduler backends when the OS scheduler refuses a request. Never escapes the Scheduler's public methods.
class SchedulerError(Exception):
    pass
