from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import JSON, Column, DateTime, Enum, Float, Integer, String, Text

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingStatus(str, PyEnum):
    """
    Enumeration of moderation states of a submitted listing.

    Values
    ------
    pending
        Submitted and waiting for a moderator.
    approved
        Published as a public escape room.
    rejected
        Declined by a moderator, optionally with a reason.
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DifficultyLevel(str, PyEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class PendingListing(Base):
    """
    SQLAlchemy model representing a business-submitted escape room
    awaiting moderation.

    Attributes
    ----------
    id : int
        Primary key.
    escape_room_name, business_name, website, description : str
        Basic information about the venue.
    street_address, city, state, zip_code, country : str
        Location of the venue.
    duration_minutes, min_players, max_players : int
        Game details.
    difficulty_level : DifficultyLevel
        Advertised difficulty.
    price_per_person : float
        Ticket price.
    themes : list of str
        Theme names, the first one becomes the room's category.
    phone_number, email : str
        Business contact details.
    images : list of str
        Uploaded image URLs.
    submitted_by : int
        Identifier of the submitting user.
    status : ListingStatus
        Moderation state.
    approved_by, approved_at, rejected_at, rejection_reason
        Moderation audit fields.
    approved_room_id : int
        Identifier of the escape room created on approval.
    created_at, updated_at : datetime
        Timestamps.
    """
    __tablename__ = "pending_listings"

    id = Column(Integer, primary_key=True, index=True)

    escape_room_name = Column(String(255), nullable=False)
    business_name = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    description = Column(Text, nullable=False)

    street_address = Column(String(255), nullable=False)
    city = Column(String(120), nullable=False)
    state = Column(String(120), nullable=False)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(120), nullable=False, default="United States")

    duration_minutes = Column(Integer, nullable=False)
    min_players = Column(Integer, nullable=False)
    max_players = Column(Integer, nullable=False)
    difficulty_level = Column(Enum(DifficultyLevel), nullable=False)
    price_per_person = Column(Float, nullable=False)
    themes = Column(JSON, nullable=False, default=list)

    phone_number = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False)
    images = Column(JSON, nullable=False, default=list)

    submitted_by = Column(Integer, index=True, nullable=False)
    status = Column(Enum(ListingStatus), nullable=False, default=ListingStatus.PENDING, index=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    approved_room_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class UploadedImage(Base):
    """
    Ownership record for a file pushed to ImageKit through this service.

    Only the uploader (or a moderator) may delete the file later.
    """
    __tablename__ = "listing_images"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(String(255), unique=True, index=True, nullable=False)
    url = Column(Text, nullable=False)
    uploaded_by = Column(Integer, index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
