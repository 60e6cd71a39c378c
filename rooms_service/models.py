from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EscapeRoom(Base):
    """
    SQLAlchemy model representing a public escape room venue.

    Attributes
    ----------
    id : int
        Primary key.
    name : str
        Venue name as published by the business (may embed city/state).
    city, state, country, postal_code : str
        Location hierarchy fields. ``state`` holds either a two-letter
        abbreviation or a full state name depending on the data source.
    latitude, longitude : float
        Geographic coordinates.
    rating : float
        Precomputed rating from the seeded data set.
    reviews_average : int
        Number of seeded reviews. The column name is historical; it holds
        a count, not an average.
    working_hours : str
        Loosely structured JSON or free text.
    status : str
        ``"Open"`` for publicly listed venues.
    category_new : str
        Theme category (e.g. 'Horror', 'Mystery').
    """
    __tablename__ = "escape_rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    website = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    full_address = Column(String(500), nullable=True)
    city = Column(String(120), nullable=True, index=True)
    state = Column(String(120), nullable=True, index=True)
    country = Column(String(120), nullable=True, index=True)
    postal_code = Column(String(20), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    rating = Column(Float, nullable=True)
    reviews_average = Column(Integer, nullable=True)
    photo = Column(String(500), nullable=True)
    working_hours = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    post_content = Column(Text, nullable=True)
    order_links = Column(String(500), nullable=True)
    check_url = Column(String(500), nullable=True)
    status = Column(String(30), nullable=False, default="Open", index=True)
    category_new = Column(String(120), nullable=True, index=True)
    difficulty = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class RoomAmenity(Base):
    """Amenity row attached to a room (parking, accessibility, ...)."""
    __tablename__ = "room_amenities"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("escape_rooms.id"), index=True, nullable=False)
    amenity_name = Column(String(120), nullable=False)
    amenity_category = Column(String(120), nullable=True)
    amenity_value = Column(String(255), nullable=True)
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)


class BusinessHours(Base):
    """Opening hours for one day of the week (0 = Sunday)."""
    __tablename__ = "business_hours"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("escape_rooms.id"), index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    day_name = Column(String(20), nullable=False)
    open_time = Column(String(20), nullable=True)
    close_time = Column(String(20), nullable=True)
    is_closed = Column(Boolean, default=False)
    special_hours = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class GeographicRegion(Base):
    """
    Lookup row for a country, state, city, region or county.

    Regions form a tree through ``parent_id``.
    """
    __tablename__ = "geographic_regions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False, index=True)
    type = Column(String(20), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("geographic_regions.id"), nullable=True)
    code = Column(String(20), nullable=True)
    center_lat = Column(Float, nullable=True)
    center_lng = Column(Float, nullable=True)
    population = Column(Integer, nullable=True)
    area_sq_miles = Column(Float, nullable=True)
    timezone = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow)
