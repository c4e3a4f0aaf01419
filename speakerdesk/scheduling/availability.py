"""Booking state machine for a single speaker.

A speaker is either ``Free`` or ``Locked`` for one program.  The functions
here are pure: they take the current value and return the next one (or
raise), and never touch storage.  Persisting the result is the scheduling
service's job.

Locks expire lazily.  A lock whose program date is strictly before today is
treated as free by both the read-time query and the next booking attempt,
but the stored record keeps showing it until a write replaces it.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

from speakerdesk.scheduling.errors import AlreadyLocked, InvalidRequest

FREE = 'free'
LOCKED = 'locked'


@dataclass(frozen=True)
class Free:
    pass


@dataclass(frozen=True)
class Locked:
    program_date: date
    program_time: str
    locked_by: int | None
    locked_at: datetime


Availability = Union[Free, Locked]


def state_of(current: Availability) -> str:
    return LOCKED if isinstance(current, Locked) else FREE


def validate_lock_request(program_date: date | None, program_time: str | None) -> tuple[date, str]:
    """Check that a lock request names both a program date and time.

    Returns the date and the trimmed time label.  Raises ``InvalidRequest``
    before any state is looked at.
    """
    normalized_time = program_time.strip() if program_time else ''
    if program_date is None or not normalized_time:
        raise InvalidRequest('Program date and time are required.')
    return program_date, normalized_time


def is_expired(locked: Locked, now: datetime) -> bool:
    # A program dated today is still active.
    return locked.program_date < now.date()


def reconcile(current: Availability, now: datetime) -> Availability:
    if isinstance(current, Locked) and is_expired(current, now):
        return Free()
    return current


def is_currently_available(current: Availability, now: datetime) -> bool:
    return isinstance(reconcile(current, now), Free)


def lock(
    current: Availability,
    caller_id: int | None,
    program_date: date | None,
    program_time: str | None,
    now: datetime,
) -> Locked:
    """Claim a speaker for a program.

    Succeeds when the speaker is free or its existing lock has expired;
    raises ``AlreadyLocked`` with the current holder otherwise.
    """
    program_date, program_time = validate_lock_request(program_date, program_time)

    effective = reconcile(current, now)
    if isinstance(effective, Locked):
        raise AlreadyLocked(effective.locked_by, effective.program_date, effective.program_time)

    return Locked(
        program_date=program_date,
        program_time=program_time,
        locked_by=caller_id,
        locked_at=now,
    )


def release() -> Free:
    # Any caller may release any lock, whatever the current state.
    return Free()
