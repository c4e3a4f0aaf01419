"""Page model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from speakerdesk.database import Base


class Page(Base):
    """A category that speakers are listed under."""
    __tablename__ = "pages"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
