from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EscapeRoomBase(BaseModel):
    """
    Base schema for escape room information.

    Shared fields used when creating, reading, and updating rooms.
    """
    name: str = Field(..., min_length=1, max_length=255)
    website: Optional[str] = None
    phone: Optional[str] = None
    full_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = "United States"
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    reviews_average: Optional[int] = Field(default=None, ge=0)
    photo: Optional[str] = None
    working_hours: Optional[str] = None
    description: Optional[str] = None
    post_content: Optional[str] = None
    order_links: Optional[str] = None
    check_url: Optional[str] = None
    category_new: Optional[str] = None
    difficulty: Optional[str] = None


class EscapeRoomCreate(EscapeRoomBase):
    """
    Schema for creating a new escape room.

    Used by administrators and by the listings service when a pending
    listing is approved.
    """
    status: str = "Open"


class EscapeRoomUpdate(BaseModel):
    """
    Schema for partial updates to a room.

    All fields are optional and only provided values will be updated.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    website: Optional[str] = None
    phone: Optional[str] = None
    full_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    reviews_average: Optional[int] = Field(default=None, ge=0)
    photo: Optional[str] = None
    working_hours: Optional[str] = None
    description: Optional[str] = None
    post_content: Optional[str] = None
    order_links: Optional[str] = None
    check_url: Optional[str] = None
    status: Optional[str] = None
    category_new: Optional[str] = None
    difficulty: Optional[str] = None


class EscapeRoomRead(EscapeRoomBase):
    """
    Schema returned when reading raw room data.

    Extends EscapeRoomBase with identifiers, status and timestamps.
    """
    id: int
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoomDisplay(BaseModel):
    """
    Room formatted for listing cards and venue pages.

    Missing values are replaced with display defaults (placeholder image,
    'Adventure' theme, 'Beginner' difficulty). ``venue_name`` is the room
    name with embedded city/state fragments removed, used to build URLs.
    """
    id: int
    name: str
    location: str
    city: str
    state: str
    venue_name: str
    rating: Optional[float] = None
    reviews: int = 0
    theme: str
    difficulty: str
    image: str
    description: str = ""
    post_content: str = ""
    address: str = ""
    website: str = ""
    phone: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    working_hours: Optional[str] = None
    booking_url: str = ""
    url: str = ""


class RoomSearchResult(BaseModel):
    data: List[RoomDisplay]
    count: int
    limit: int
    offset: int


class AmenityRead(BaseModel):
    id: int
    room_id: int
    amenity_name: str
    amenity_category: Optional[str] = None
    amenity_value: Optional[str] = None
    is_available: bool = True

    model_config = ConfigDict(from_attributes=True)


class BusinessHoursRead(BaseModel):
    id: int
    room_id: int
    day_of_week: int
    day_name: str
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    is_closed: bool = False
    special_hours: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RoomDetail(BaseModel):
    """Venue page payload: the room plus its joined detail rows."""
    room: RoomDisplay
    amenities: List[AmenityRead] = []
    business_hours: List[BusinessHoursRead] = []
    nearby_rooms: List[RoomDisplay] = []


class NearbyCity(BaseModel):
    city: str
    state: str
    url: str = ""


class StateSummary(BaseModel):
    """
    Per-state aggregate.

    ``state`` is the abbreviation used for URLs when one is known,
    ``full_name`` is the display name.
    """
    state: str
    full_name: str
    room_count: int
    city_count: int = 0


class CityCount(BaseModel):
    city: str
    state: str
    count: int


class ZipCodeOption(BaseModel):
    zip_code: str
    city: str
    state: str


class CountryStats(BaseModel):
    country: str
    room_count: int
    state_count: int
    city_count: int


class ThemeCount(BaseModel):
    theme: str
    count: int
    slug: str = ""


class DatabaseStats(BaseModel):
    total_rooms: int = 0
    unique_cities: int = 0
    unique_states: int = 0
    average_rating: float = 4.2
    total_reviews: int = 0


class StatePage(BaseModel):
    state: str
    full_name: str
    rooms: List[RoomDisplay]
    cities: List[CityCount]


class CityPage(BaseModel):
    city: str
    state: str
    rooms: List[RoomDisplay]
    nearby_cities: List[NearbyCity]


class ThemePage(BaseModel):
    theme: str
    slug: str
    count: int
    rooms: List[RoomDisplay]


class RegionRead(BaseModel):
    id: int
    name: str
    type: str
    parent_id: Optional[int] = None
    code: Optional[str] = None
    center_lat: Optional[float] = None
    center_lng: Optional[float] = None
    population: Optional[int] = None
    area_sq_miles: Optional[float] = None
    timezone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
