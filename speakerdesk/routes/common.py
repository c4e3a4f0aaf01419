from fastapi import HTTPException, status

from speakerdesk.scheduling.errors import (
    AlreadyLocked,
    Conflict,
    InvalidRequest,
    NotFound,
    SchedulingBusy,
    SchedulingError,
)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    if isinstance(exc, InvalidRequest):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if isinstance(exc, AlreadyLocked):
        locked_by = None
        if exc.locked_by is not None:
            locked_by = {'id': exc.locked_by, 'username': exc.holder_name}
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                'message': str(exc),
                'locked_by': locked_by,
                'program_date': exc.program_date.isoformat() if exc.program_date else None,
                'program_time': exc.program_time,
            },
        )

    if isinstance(exc, SchedulingBusy):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))

    if isinstance(exc, Conflict):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
