"""User model definitions."""

from sqlalchemy import Column, Integer, String
from speakerdesk.database import Base

ADMIN_ROLE = "admin"
USER_ROLE = "user"


class User(Base):
    """Represents an authenticated caller."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, nullable=False)
    hashed_password = Column(String)
    role = Column(String, nullable=False, default=USER_ROLE)  # user/admin

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
