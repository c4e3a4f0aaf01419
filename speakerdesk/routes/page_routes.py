from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from speakerdesk.auth.dependencies import get_current_user, require_admin
from speakerdesk.database import get_db
from speakerdesk.models.page import Page
from speakerdesk.models.speaker import Speaker
from speakerdesk.models.user import User
from speakerdesk.routes.common import database_unavailable

router = APIRouter(tags=['pages'])

DUPLICATE_PAGE_DETAIL = 'Page name already exists.'
PAGE_IN_USE_DETAIL = 'Cannot delete page while speakers reference it. Please delete or move the speakers first.'


def _normalize_page_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Page name is required.')
    return normalized


class CreatePageRequest(BaseModel):
    name: str
    order: int = 0

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _normalize_page_name(value)


class UpdatePageRequest(BaseModel):
    name: str | None = None
    order: int | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_page_name(value)


class PageResponse(BaseModel):
    id: int
    name: str
    order: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str


def get_page_or_404(page_id: int, db: Session) -> Page:
    page = db.get(Page, page_id)
    if page is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Page not found.',
        )
    return page


def ensure_page_name_is_unique(name: str, db: Session, exclude_id: int | None = None) -> None:
    query = db.query(Page).filter(Page.name == name)
    if exclude_id is not None:
        query = query.filter(Page.id != exclude_id)

    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=DUPLICATE_PAGE_DETAIL,
        )


@router.get('', response_model=list[PageResponse])
def list_pages(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user

    try:
        return db.query(Page).order_by(Page.order.asc(), Page.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=PageResponse, status_code=status.HTTP_201_CREATED)
def create_page(
    data: CreatePageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user

    try:
        ensure_page_name_is_unique(data.name, db)

        page = Page(name=data.name, order=data.order)
        db.add(page)
        db.commit()
        db.refresh(page)

        return page
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=DUPLICATE_PAGE_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{page_id}', response_model=PageResponse)
def update_page(
    page_id: int,
    data: UpdatePageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user

    try:
        page = get_page_or_404(page_id, db)

        if data.name is not None:
            ensure_page_name_is_unique(data.name, db, exclude_id=page.id)
            page.name = data.name
        if data.order is not None:
            page.order = data.order

        db.commit()
        db.refresh(page)

        return page
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=DUPLICATE_PAGE_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{page_id}', response_model=MessageResponse)
def delete_page(
    page_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user

    try:
        page = get_page_or_404(page_id, db)

        speaker_count = db.query(Speaker).filter(Speaker.page_id == page.id).count()
        if speaker_count > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    f'Cannot delete page. It has {speaker_count} speaker(s). '
                    'Please delete or move the speakers first.'
                ),
            )

        db.delete(page)
        db.commit()

        return MessageResponse(message='Page deleted successfully.')
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=PAGE_IN_USE_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
