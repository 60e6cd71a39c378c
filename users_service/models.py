from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, PyEnum):
    """
    Account roles carried in the ``role`` claim of every token.

    ``regular`` members submit listings; ``moderator`` approves or rejects
    them and removes reviews; ``admin`` additionally manages rooms and
    accounts. ``service_account`` only appears in tokens services mint
    for each other and is never stored on a profile by registration.
    """
    ADMIN = "admin"
    REGULAR = "regular"
    MODERATOR = "moderator"
    SERVICE_ACCOUNT = "service_account"


class Profile(Base):
    """A registered site account. The first profile created becomes an admin."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    # bcrypt hash, never returned by the API
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.REGULAR)
    # deactivated accounts cannot log in and their tokens stop working
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
