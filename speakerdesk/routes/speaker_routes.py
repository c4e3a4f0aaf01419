from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ValidationInfo, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from speakerdesk.auth.dependencies import get_current_user, require_admin
from speakerdesk.database import get_db
from speakerdesk.models.page import Page
from speakerdesk.models.speaker import Speaker
from speakerdesk.models.user import User
from speakerdesk.routes.common import database_unavailable, to_http_exception
from speakerdesk.scheduling import availability
from speakerdesk.scheduling.errors import SchedulingError
from speakerdesk.scheduling.service import SchedulingService, speaker_locks

router = APIRouter(tags=['speakers'])

STALE_SPEAKER_DETAIL = 'Speaker was changed by another request. Reload and try again.'


def _require_text(value: str, field_name: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{field_name} is required.')
    return normalized


class CreateSpeakerRequest(BaseModel):
    name: str
    area: str
    phone_number: str
    page_id: int

    @field_validator('name', 'area', 'phone_number')
    @classmethod
    def validate_text(cls, value: str, info: ValidationInfo) -> str:
        return _require_text(value, info.field_name.replace('_', ' ').capitalize())


class UpdateSpeakerRequest(BaseModel):
    name: str | None = None
    area: str | None = None
    phone_number: str | None = None
    page_id: int | None = None

    @field_validator('name', 'area', 'phone_number')
    @classmethod
    def validate_text(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return None
        return _require_text(value, info.field_name.replace('_', ' ').capitalize())


class UpdateAvailabilityRequest(BaseModel):
    program_date: date | None = None
    program_time: str | None = None
    make_available: bool = False


class PageRefResponse(BaseModel):
    id: int
    name: str


class UserRefResponse(BaseModel):
    id: int
    username: str | None = None


class AvailabilityResponse(BaseModel):
    is_available: bool
    program_date: date | None = None
    program_time: str | None = None
    locked_by: UserRefResponse | None = None
    locked_at: datetime | None = None


class SpeakerResponse(BaseModel):
    id: int
    name: str
    area: str
    phone_number: str
    page_id: int
    page: PageRefResponse | None = None
    availability: AvailabilityResponse
    is_currently_available: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AvailabilityStatusResponse(BaseModel):
    speaker_id: int
    state: str
    is_currently_available: bool
    program_date: date | None = None
    program_time: str | None = None
    locked_by: UserRefResponse | None = None
    locked_at: datetime | None = None


class MessageResponse(BaseModel):
    message: str


def get_scheduling_service() -> SchedulingService:
    return SchedulingService()


def serialize_user_ref(user_id: int | None, user: User | None) -> UserRefResponse | None:
    if user_id is None:
        return None
    return UserRefResponse(id=user_id, username=user.username if user is not None else None)


def serialize_speaker(speaker: Speaker, now: datetime | None = None) -> SpeakerResponse:
    current = speaker.availability
    if now is None:
        currently_available = speaker.is_currently_available
    else:
        currently_available = availability.is_currently_available(current, now)
    locked = current if isinstance(current, availability.Locked) else None

    return SpeakerResponse(
        id=speaker.id,
        name=speaker.name,
        area=speaker.area,
        phone_number=speaker.phone_number,
        page_id=speaker.page_id,
        page=PageRefResponse(id=speaker.page.id, name=speaker.page.name) if speaker.page else None,
        availability=AvailabilityResponse(
            is_available=locked is None,
            program_date=locked.program_date if locked else None,
            program_time=locked.program_time if locked else None,
            locked_by=serialize_user_ref(locked.locked_by, speaker.locker) if locked else None,
            locked_at=locked.locked_at if locked else None,
        ),
        is_currently_available=currently_available,
        created_at=speaker.created_at,
        updated_at=speaker.updated_at,
    )


def get_speaker_or_404(speaker_id: int, db: Session) -> Speaker:
    speaker = db.get(Speaker, speaker_id)
    if speaker is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Speaker not found.',
        )
    return speaker


def page_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail='Page not found.',
    )


def ensure_page_exists(page_id: int, db: Session) -> None:
    if db.get(Page, page_id) is None:
        raise page_not_found()


@router.get('', response_model=list[SpeakerResponse])
def list_speakers(
    page_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user

    try:
        query = db.query(Speaker)
        if page_id is not None:
            query = query.filter(Speaker.page_id == page_id)

        return [serialize_speaker(speaker) for speaker in query.order_by(Speaker.name.asc()).all()]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{speaker_id}', response_model=SpeakerResponse)
def get_speaker(
    speaker_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user

    try:
        return serialize_speaker(get_speaker_or_404(speaker_id, db))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=SpeakerResponse, status_code=status.HTTP_201_CREATED)
def create_speaker(
    data: CreateSpeakerRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user

    try:
        ensure_page_exists(data.page_id, db)

        speaker = Speaker(
            name=data.name,
            area=data.area,
            phone_number=data.phone_number,
            page_id=data.page_id,
        )
        speaker.availability = availability.Free()
        db.add(speaker)
        db.commit()
        db.refresh(speaker)

        return serialize_speaker(speaker)
    except IntegrityError as exc:
        db.rollback()
        raise page_not_found() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{speaker_id}', response_model=SpeakerResponse)
def update_speaker(
    speaker_id: int,
    data: UpdateSpeakerRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user

    try:
        speaker = get_speaker_or_404(speaker_id, db)

        if data.page_id is not None:
            ensure_page_exists(data.page_id, db)
            speaker.page_id = data.page_id
        if data.name is not None:
            speaker.name = data.name
        if data.area is not None:
            speaker.area = data.area
        if data.phone_number is not None:
            speaker.phone_number = data.phone_number

        db.commit()
        db.refresh(speaker)

        return serialize_speaker(speaker)
    except IntegrityError as exc:
        db.rollback()
        raise page_not_found() from exc
    except StaleDataError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=STALE_SPEAKER_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{speaker_id}', response_model=MessageResponse)
def delete_speaker(
    speaker_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user

    try:
        speaker = get_speaker_or_404(speaker_id, db)

        db.delete(speaker)
        db.commit()
        speaker_locks.discard(speaker_id)

        return MessageResponse(message='Speaker deleted successfully.')
    except StaleDataError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=STALE_SPEAKER_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{speaker_id}/availability', response_model=SpeakerResponse)
def update_speaker_availability(
    speaker_id: int,
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):

    try:
        if data.make_available:
            speaker = service.release(speaker_id)
        else:
            speaker = service.book(speaker_id, current_user.id, data.program_date, data.program_time)

        return serialize_speaker(speaker, now=service.now())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{speaker_id}/availability', response_model=AvailabilityStatusResponse)
def get_speaker_availability(
    speaker_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    del current_user

    try:
        speaker, current = service.current_availability(speaker_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if isinstance(current, availability.Locked):
        return AvailabilityStatusResponse(
            speaker_id=speaker.id,
            state=availability.LOCKED,
            is_currently_available=False,
            program_date=current.program_date,
            program_time=current.program_time,
            locked_by=serialize_user_ref(current.locked_by, speaker.locker),
            locked_at=current.locked_at,
        )

    return AvailabilityStatusResponse(
        speaker_id=speaker.id,
        state=availability.FREE,
        is_currently_available=True,
    )
