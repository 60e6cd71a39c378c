from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class ReviewCreate(BaseModel):
    """
    Schema for submitting a new review.

    Text fields are trimmed; optional fields sent as blank strings are
    stored as NULL.
    """
    room_id: int = Field(..., ge=1)
    user_name: str = Field(..., min_length=1, max_length=100)
    user_email: Optional[EmailStr] = None
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(default=None, max_length=200)
    comment: Optional[str] = Field(default=None, max_length=5000)
    visit_date: Optional[date] = None

    @field_validator("user_name")
    @classmethod
    def strip_user_name(cls, v: str) -> str:
        """
        Normalize and validate the reviewer name.

        - Strips leading/trailing whitespace.
        - Rejects empty names after stripping.
        """
        v = v.strip()
        if not v:
            raise ValueError("user_name must not be empty")
        return v

    @field_validator("user_email", "title", "comment", "visit_date", mode="before")
    @classmethod
    def optional_blank(cls, v):
        if isinstance(v, str):
            return blank_to_none(v)
        return v


class ReviewRead(BaseModel):
    """
    Schema returned when reading review data.

    The reviewer email is not exposed.
    """
    id: int
    room_id: int
    user_id: Optional[int] = None
    user_name: str
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    visit_date: Optional[date] = None
    helpful_count: int = 0
    is_verified: bool = False
    is_manual: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReviewStats(BaseModel):
    """
    Combined rating statistics for a room.

    ``average`` is always the room's seeded rating; site reviews only add
    to ``total`` and to the star ``distribution`` (index 0 = 1 star).
    """
    total: int
    average: float
    distribution: List[int]
    original_rating: float
    original_review_count: int
    manual_review_count: int


class RoomReviews(BaseModel):
    reviews: List[ReviewRead]
    stats: ReviewStats


class ReviewCreated(BaseModel):
    message: str = "Review created successfully"
    review: ReviewRead


class HelpfulCount(BaseModel):
    success: bool = True
    helpful_count: int
