"""Applies booking decisions to stored speakers.

Every write goes through ``SchedulingService._apply``: load the speaker,
ask the availability engine for the next value, persist it.  That cycle is
serialized per speaker id in two ways:

* an in-process lock per speaker id, so two requests handled by the same
  worker never both read the same free speaker;
* the speaker row's ``version`` column, so a write from another worker that
  landed between our read and our write makes SQLAlchemy raise
  ``StaleDataError``.  The whole cycle is then retried on fresh state.

Reads never persist lazily expired locks; the next booking does.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from speakerdesk.core import config
from speakerdesk.database import SessionLocal
from speakerdesk.models.speaker import Speaker
from speakerdesk.scheduling import availability
from speakerdesk.scheduling.errors import AlreadyLocked, Conflict, NotFound, SchedulingBusy

logger = logging.getLogger(__name__)

Decision = Callable[[availability.Availability, datetime], availability.Availability]


class SpeakerLocks:
    """Hands out one ``threading.Lock`` per speaker id.

    Entries are weak: a lock disappears once no request holds it, so ids
    that are never booked again (or never existed) do not accumulate.
    """

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._locks: WeakValueDictionary[int, Lock] = WeakValueDictionary()

    def for_speaker(self, speaker_id: int) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(speaker_id)
            if lock is None:
                lock = self._locks[speaker_id] = Lock()
            return lock

    def discard(self, speaker_id: int) -> None:
        with self._registry_lock:
            self._locks.pop(speaker_id, None)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


speaker_locks = SpeakerLocks()


def load_speaker(db: Session, speaker_id: int) -> Speaker:
    speaker = db.get(Speaker, speaker_id)
    if speaker is None:
        raise NotFound('Speaker', speaker_id)
    return speaker


class SchedulingService:
    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        clock: Callable[[], datetime] = datetime.now,
        max_attempts: int = config.BOOKING_MAX_ATTEMPTS,
        lock_timeout: float = config.BOOKING_LOCK_TIMEOUT_SECONDS,
        locks: SpeakerLocks = speaker_locks,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._max_attempts = max_attempts
        self._lock_timeout = lock_timeout
        self._locks = locks

    def now(self) -> datetime:
        return self._clock()

    def book(
        self,
        speaker_id: int,
        caller_id: int | None,
        program_date: date | None,
        program_time: str | None,
    ) -> Speaker:
        """Lock a speaker for a program on behalf of ``caller_id``.

        Raises ``InvalidRequest`` for a missing date or time, ``NotFound``
        for an unknown speaker and ``AlreadyLocked`` while another program
        still holds it.  An expired lock is overwritten.
        """
        program_date, program_time = availability.validate_lock_request(program_date, program_time)

        def decide(current: availability.Availability, now: datetime) -> availability.Availability:
            return availability.lock(current, caller_id, program_date, program_time, now)

        speaker = self._apply(speaker_id, decide)
        logger.info(
            'Speaker %s booked by user %s for %s %s',
            speaker_id, caller_id, program_date.isoformat(), program_time,
        )
        return speaker

    def release(self, speaker_id: int) -> Speaker:
        """Make a speaker available again.  Releasing a free speaker is a no-op."""
        speaker = self._apply(speaker_id, lambda current, now: availability.release())
        logger.info('Speaker %s released', speaker_id)
        return speaker

    def current_availability(self, speaker_id: int) -> tuple[Speaker, availability.Availability]:
        """Return the speaker and its availability with expired locks read as free.

        Nothing is written; the stored record may still show the stale lock.
        """
        db = self._session_factory()
        try:
            speaker = load_speaker(db, speaker_id)
            return speaker, availability.reconcile(speaker.availability, self.now())
        finally:
            db.close()

    def _apply(self, speaker_id: int, decide: Decision) -> Speaker:
        speaker_lock = self._locks.for_speaker(speaker_id)
        if not speaker_lock.acquire(timeout=self._lock_timeout):
            logger.warning('Timed out waiting for the booking lock on speaker %s', speaker_id)
            raise SchedulingBusy(speaker_id)

        try:
            for attempt in range(1, self._max_attempts + 1):
                db = self._session_factory()
                try:
                    speaker = load_speaker(db, speaker_id)
                    try:
                        speaker.availability = decide(speaker.availability, self.now())
                    except AlreadyLocked as exc:
                        holder = speaker.locker
                        raise AlreadyLocked(
                            exc.locked_by,
                            exc.program_date,
                            exc.program_time,
                            speaker_id=speaker_id,
                            holder_name=holder.username if holder is not None else None,
                        ) from exc
                    db.commit()
                    db.refresh(speaker)
                    return speaker
                except StaleDataError:
                    db.rollback()
                    logger.warning(
                        'Speaker %s changed while booking (attempt %s of %s)',
                        speaker_id, attempt, self._max_attempts,
                    )
                except Exception:
                    db.rollback()
                    raise
                finally:
                    db.close()
        finally:
            speaker_lock.release()

        raise Conflict(f'Speaker {speaker_id} kept changing while it was being updated. Try again.')
