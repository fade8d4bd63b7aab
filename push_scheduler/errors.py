class PushSchedulerError(Exception):
    """Base class for errors raised by the scheduler and its collaborators."""


class InvalidTimeFormat(PushSchedulerError, ValueError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid time value: {value!r}")


class NotFound(PushSchedulerError):
    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Schedule {schedule_id} not found")


class DispatchFailed(PushSchedulerError):
    """The push provider rejected the message or could not be reached."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StoreUnavailable(PushSchedulerError):
    """Reading from or writing to the database failed."""
