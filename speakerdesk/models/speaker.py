"""Speaker model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from speakerdesk.database import Base
from speakerdesk.models.page import Page
from speakerdesk.models.user import User
from speakerdesk.scheduling.availability import Availability, Free, Locked, reconcile


class Speaker(Base):
    """A bookable speaker and the program it is currently locked for, if any."""
    __tablename__ = "speakers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    area = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    page_id = Column(Integer, ForeignKey("pages.id"), nullable=False, index=True)

    is_available = Column(Boolean, nullable=False, default=True)
    program_date = Column(Date, nullable=True)
    program_time = Column(String, nullable=True)
    locked_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    locked_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    page = relationship(Page, lazy="joined")
    locker = relationship(User, lazy="joined")

    __mapper_args__ = {"version_id_col": version}

    @property
    def availability(self) -> Availability:
        if self.is_available is not False:
            return Free()
        return Locked(
            program_date=self.program_date,
            program_time=self.program_time,
            locked_by=self.locked_by,
            locked_at=self.locked_at,
        )

    @availability.setter
    def availability(self, value: Availability) -> None:
        # All five columns are written together so a lock is never half applied.
        if isinstance(value, Locked):
            self.is_available = False
            self.program_date = value.program_date
            self.program_time = value.program_time
            self.locked_by = value.locked_by
            self.locked_at = value.locked_at
        else:
            self.is_available = True
            self.program_date = None
            self.program_time = None
            self.locked_by = None
            self.locked_at = None

    @property
    def is_currently_available(self) -> bool:
        return isinstance(reconcile(self.availability, datetime.now()), Free)
