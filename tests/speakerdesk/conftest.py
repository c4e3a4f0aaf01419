import os
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from speakerdesk.database import Base, build_engine  # noqa: E402
from speakerdesk.models.page import Page  # noqa: E402
from speakerdesk.models.speaker import Speaker  # noqa: E402
from speakerdesk.models.user import ADMIN_ROLE, USER_ROLE, User  # noqa: E402
from speakerdesk.scheduling.availability import Free  # noqa: E402
from speakerdesk.scheduling.service import SchedulingService, SpeakerLocks  # noqa: E402

NOW = datetime(2025, 5, 1, 9, 0)


@pytest.fixture
def session_factory(tmp_path):
    # A file database so that sessions opened from worker threads share state.
    engine = build_engine(f"sqlite:///{tmp_path / 'speakerdesk.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _add_user(db, email: str, username: str, role: str) -> User:
    user = User(email=email, username=username, hashed_password='', role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db) -> User:
    return _add_user(db, 'admin@example.com', 'admin', ADMIN_ROLE)


@pytest.fixture
def caller_a(db) -> User:
    return _add_user(db, 'alice@example.com', 'alice', USER_ROLE)


@pytest.fixture
def caller_b(db) -> User:
    return _add_user(db, 'bob@example.com', 'bob', USER_ROLE)


@pytest.fixture
def page(db) -> Page:
    page = Page(name='Technology', order=1)
    db.add(page)
    db.commit()
    db.refresh(page)
    return page


@pytest.fixture
def speaker_id(db, page) -> int:
    speaker = Speaker(name='Grace Hopper', area='Compilers', phone_number='555-0100', page_id=page.id)
    speaker.availability = Free()
    db.add(speaker)
    db.commit()
    return speaker.id


@pytest.fixture
def service(session_factory) -> SchedulingService:
    return SchedulingService(session_factory=session_factory, clock=lambda: NOW, locks=SpeakerLocks())
