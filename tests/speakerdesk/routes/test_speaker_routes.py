from datetime import date, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import event

from speakerdesk.models.page import Page
from speakerdesk.models.speaker import Speaker
from speakerdesk.routes.speaker_routes import (
    CreateSpeakerRequest,
    UpdateAvailabilityRequest,
    UpdateSpeakerRequest,
    create_speaker,
    delete_speaker,
    get_speaker,
    get_speaker_availability,
    list_speakers,
    update_speaker,
    update_speaker_availability,
)
from speakerdesk.scheduling.service import SchedulingService, SpeakerLocks


def _book(speaker_id, caller, service, program_date=date(2025, 6, 1), program_time='10:00'):
    return update_speaker_availability(
        speaker_id=speaker_id,
        data=UpdateAvailabilityRequest(program_date=program_date, program_time=program_time),
        current_user=caller,
        service=service,
    )


def test_create_speaker_request_trims_and_requires_text_fields() -> None:
    request = CreateSpeakerRequest(name=' Ada ', area=' Math ', phone_number=' 555 ', page_id=1)

    assert (request.name, request.area, request.phone_number) == ('Ada', 'Math', '555')

    with pytest.raises(ValidationError):
        CreateSpeakerRequest(name='Ada', area='  ', phone_number='555', page_id=1)


def test_create_speaker_starts_free(db, admin_user, page) -> None:
    response = create_speaker(
        data=CreateSpeakerRequest(name='Ada Lovelace', area='Math', phone_number='555-0199', page_id=page.id),
        db=db,
        current_user=admin_user,
    )

    assert response.page.name == 'Technology'
    assert response.availability.is_available is True
    assert response.availability.locked_by is None
    assert response.is_currently_available is True


def test_create_speaker_rejects_unknown_page(db, admin_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_speaker(
            data=CreateSpeakerRequest(name='Ada', area='Math', phone_number='555', page_id=404),
            db=db,
            current_user=admin_user,
        )

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Page not found.'


def test_list_speakers_sorts_by_name_and_filters_by_page(db, admin_user, page) -> None:
    other_page = Page(name='Arts', order=2)
    db.add(other_page)
    db.commit()

    for name, page_id in [('Zed', page.id), ('Amy', page.id), ('Mia', other_page.id)]:
        create_speaker(
            data=CreateSpeakerRequest(name=name, area='Talks', phone_number='555', page_id=page_id),
            db=db,
            current_user=admin_user,
        )

    everyone = list_speakers(page_id=None, db=db, current_user=admin_user)
    on_page = list_speakers(page_id=page.id, db=db, current_user=admin_user)

    assert [speaker.name for speaker in everyone] == ['Amy', 'Mia', 'Zed']
    assert [speaker.name for speaker in on_page] == ['Amy', 'Zed']


def test_get_speaker_returns_not_found_when_missing(db, admin_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_speaker(speaker_id=999, db=db, current_user=admin_user)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Speaker not found.'


def test_update_speaker_moves_speaker_to_another_page(db, admin_user, speaker_id) -> None:
    other_page = Page(name='Arts', order=2)
    db.add(other_page)
    db.commit()

    response = update_speaker(
        speaker_id=speaker_id,
        data=UpdateSpeakerRequest(page_id=other_page.id, area='Navy'),
        db=db,
        current_user=admin_user,
    )

    assert response.page.name == 'Arts'
    assert response.area == 'Navy'
    assert response.name == 'Grace Hopper'


def test_update_speaker_keeps_current_booking(db, admin_user, speaker_id, caller_a, service) -> None:
    _book(speaker_id, caller_a, service)
    db.expire_all()

    response = update_speaker(
        speaker_id=speaker_id,
        data=UpdateSpeakerRequest(phone_number='555-0111'),
        db=db,
        current_user=admin_user,
    )

    assert response.availability.is_available is False
    assert response.availability.locked_by.username == 'alice'


def test_delete_speaker_is_unconditional(db, admin_user, speaker_id, caller_a, service) -> None:
    _book(speaker_id, caller_a, service)
    db.expire_all()

    response = delete_speaker(speaker_id=speaker_id, db=db, current_user=admin_user)

    assert response.message == 'Speaker deleted successfully.'
    db.expire_all()
    assert db.get(Speaker, speaker_id) is None


def test_book_speaker_returns_locked_speaker_with_holder(speaker_id, caller_a, service) -> None:
    response = _book(speaker_id, caller_a, service)

    assert response.availability.is_available is False
    assert response.availability.program_date == date(2025, 6, 1)
    assert response.availability.program_time == '10:00'
    assert response.availability.locked_by.id == caller_a.id
    assert response.availability.locked_by.username == 'alice'
    assert response.is_currently_available is False


def test_book_speaker_requires_date_and_time(speaker_id, caller_a, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(speaker_id, caller_a, service, program_time=None)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Program date and time are required.'


def test_book_speaker_conflict_reports_current_holder(speaker_id, caller_a, caller_b, service) -> None:
    _book(speaker_id, caller_a, service)

    with pytest.raises(HTTPException) as exception_info:
        _book(speaker_id, caller_b, service, program_date=date(2025, 6, 2), program_time='11:00')

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['locked_by'] == {'id': caller_a.id, 'username': 'alice'}
    assert exception_info.value.detail['program_date'] == '2025-06-01'


def test_book_unknown_speaker_returns_not_found(caller_a, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(999, caller_a, service)

    assert exception_info.value.status_code == 404


def test_make_available_releases_without_date_or_time(speaker_id, caller_a, caller_b, service) -> None:
    _book(speaker_id, caller_a, service)

    response = update_speaker_availability(
        speaker_id=speaker_id,
        data=UpdateAvailabilityRequest(make_available=True),
        current_user=caller_b,
        service=service,
    )

    assert response.availability.is_available is True
    assert response.availability.program_date is None
    assert response.availability.locked_by is None


def test_get_availability_reads_expired_lock_as_free(session_factory, speaker_id, caller_a, service) -> None:
    earlier = SchedulingService(
        session_factory=session_factory,
        clock=lambda: service.now() - timedelta(days=7),
        locks=SpeakerLocks(),
    )
    _book(speaker_id, caller_a, earlier, program_date=service.now().date() - timedelta(days=1))

    response = get_speaker_availability(speaker_id=speaker_id, current_user=caller_a, service=service)

    assert response.state == 'free'
    assert response.is_currently_available is True
    assert response.locked_by is None


def test_get_availability_reports_active_lock(speaker_id, caller_a, service) -> None:
    _book(speaker_id, caller_a, service)

    response = get_speaker_availability(speaker_id=speaker_id, current_user=caller_a, service=service)

    assert response.state == 'locked'
    assert response.is_currently_available is False
    assert response.program_date == date(2025, 6, 1)
    assert response.locked_by.username == 'alice'


def test_get_availability_returns_not_found_when_missing(caller_a, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_speaker_availability(speaker_id=999, current_user=caller_a, service=service)

    assert exception_info.value.status_code == 404


def test_update_speaker_on_stale_record_returns_conflict(db, admin_user, speaker_id, caller_a, service) -> None:
    stale = db.get(Speaker, speaker_id)
    _book(speaker_id, caller_a, service)

    with pytest.raises(HTTPException) as exception_info:
        update_speaker(
            speaker_id=speaker_id,
            data=UpdateSpeakerRequest(area='Navy'),
            db=db,
            current_user=admin_user,
        )

    assert exception_info.value.status_code == 409
    assert stale.area == 'Compilers'


def test_create_speaker_on_page_deleted_meanwhile_returns_not_found(db, session_factory, admin_user, page) -> None:
    def delete_page_from_another_request(session, flush_context, instances) -> None:
        other = session_factory()
        try:
            other.delete(other.get(Page, page.id))
            other.commit()
        finally:
            other.close()

    event.listen(db, 'before_flush', delete_page_from_another_request, once=True)

    with pytest.raises(HTTPException) as exception_info:
        create_speaker(
            data=CreateSpeakerRequest(name='Ada', area='Math', phone_number='555', page_id=page.id),
            db=db,
            current_user=admin_user,
        )

    assert exception_info.value.status_code == 404
    assert db.query(Speaker).count() == 0
