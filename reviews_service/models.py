from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Review(Base):
    """
    SQLAlchemy model representing a room review.

    Attributes
    ----------
    id : int
        Primary key.
    room_id : int
        Identifier of the escape room being reviewed.
    user_id : int, optional
        Identifier of the signed-in author, None for anonymous reviews.
    user_name : str
        Display name given by the reviewer.
    user_email : str, optional
        Contact email, never shown publicly.
    rating : int
        Numerical rating, constrained to the range 1–5.
    title, comment : str, optional
        Review text.
    visit_date : date, optional
        When the reviewer played the room.
    helpful_count : int
        Number of "helpful" votes.
    is_verified : bool
        Whether the visit has been verified.
    is_manual : bool
        True for reviews submitted through the site, False for reviews
        imported with the seeded room data.
    created_at, updated_at : datetime
        Timestamps.
    """
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, index=True, nullable=False)
    user_id = Column(Integer, index=True, nullable=True)
    user_name = Column(String(100), nullable=False)
    user_email = Column(String(255), nullable=True)
    rating = Column(Integer, nullable=False)  # 1–5
    title = Column(String(200), nullable=True)
    comment = Column(Text, nullable=True)
    visit_date = Column(Date, nullable=True)

    helpful_count = Column(Integer, nullable=False, default=0)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_manual = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
