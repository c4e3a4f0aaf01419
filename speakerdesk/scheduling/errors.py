"""Errors raised while scheduling speakers."""

from datetime import date


class SchedulingError(Exception):
    """Base class for scheduling errors."""


class NotFound(SchedulingError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, record_id: int) -> None:
        super().__init__(f"{kind} not found.")
        self.kind = kind
        self.record_id = record_id


class InvalidRequest(SchedulingError):
    """Raised when a booking request is missing required fields."""


class Conflict(SchedulingError):
    """Raised when a write collides with existing data or a concurrent writer."""


class AlreadyLocked(SchedulingError):
    """Raised when booking a speaker whose current program has not elapsed."""

    def __init__(
        self,
        locked_by: int | None,
        program_date: date,
        program_time: str,
        *,
        speaker_id: int | None = None,
        holder_name: str | None = None,
    ) -> None:
        super().__init__("Speaker is already scheduled for a program.")
        self.locked_by = locked_by
        self.program_date = program_date
        self.program_time = program_time
        self.speaker_id = speaker_id
        self.holder_name = holder_name


class SchedulingBusy(SchedulingError):
    """Raised when the per-speaker critical section could not be entered in time."""

    def __init__(self, speaker_id: int) -> None:
        super().__init__(f"Speaker {speaker_id} is being updated by another request. Try again.")
        self.speaker_id = speaker_id
