from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .models import DifficultyLevel, ListingStatus

MAX_IMAGES = 10


class ListingBase(BaseModel):
    """
    Base schema for a submitted escape room listing.

    Shared fields used when submitting, editing and reading listings.
    """
    escape_room_name: str = Field(..., min_length=1, max_length=255)
    business_name: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=500)
    description: str = Field(..., min_length=1)

    street_address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    state: str = Field(..., min_length=1, max_length=120)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(default="United States", max_length=120)

    duration_minutes: int = Field(..., ge=1, le=600)
    min_players: int = Field(..., ge=1)
    max_players: int = Field(..., ge=1)
    difficulty_level: DifficultyLevel
    price_per_person: float = Field(..., ge=0)
    themes: List[str] = Field(default_factory=list)

    phone_number: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    images: List[str] = Field(default_factory=list, max_length=MAX_IMAGES)

    @field_validator(
        "escape_room_name", "description", "street_address", "city", "state",
        "zip_code", "phone_number",
    )
    @classmethod
    def strip_required(cls, v: str) -> str:
        """
        Normalize required text fields.

        - Strips leading/trailing whitespace.
        - Rejects values that are empty after stripping.
        """
        v = v.strip()
        if not v:
            raise ValueError("field must not be empty")
        return v

    @field_validator("business_name", "website")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("themes")
    @classmethod
    def clean_themes(cls, v: List[str]) -> List[str]:
        return [t.strip() for t in v if t and t.strip()]

    @model_validator(mode="after")
    def check_player_range(self):
        if self.max_players < self.min_players:
            raise ValueError("max_players must be greater than or equal to min_players")
        return self


class ListingCreate(ListingBase):
    """
    Schema for submitting a new listing.

    Reuses all fields and validation rules from ListingBase.
    """
    pass


class ListingUpdate(ListingBase):
    """
    Schema for editing a pending listing.

    Edits replace the whole submission, as the listing form always sends
    every field.
    """
    pass


class ListingRead(ListingBase):
    """
    Schema returned when reading listing data.

    Extends ListingBase with identifiers and moderation fields.
    """
    id: int
    submitted_by: int
    status: ListingStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    approved_room_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    # stored rows may predate the stricter input rules
    email: str

    model_config = ConfigDict(from_attributes=True)


class ListingRejection(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class ApprovalResult(BaseModel):
    success: bool = True
    room_id: int
    listing: ListingRead


class ImageUploadResult(BaseModel):
    success: bool = True
    url: str
    file_id: str
