from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import UserRole


# ---------- Input schemas ----------
class UserCreate(BaseModel):
    """
    Schema for account registration input.

    Public registration does NOT accept role; it is assigned internally.
    ``recaptcha_token`` is the response token of the CAPTCHA widget.
    """
    name: str = Field(..., min_length=1, max_length=255)
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str
    recaptcha_token: Optional[str] = None


class UserUpdate(BaseModel):
    """
    Schema for updating a profile.

    Only name and email are editable; both are optional.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class UserRoleUpdate(BaseModel):
    """
    Schema used by admins to change an account's role.
    """
    role: UserRole


# ---------- Output schemas ----------

class UserRead(BaseModel):
    """
    Schema returned when reading account information.

    Exposes safe, non-sensitive fields and hides the password hash.
    """
    id: int
    name: str
    username: str
    email: EmailStr
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ListingCounts(BaseModel):
    all: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class Dashboard(BaseModel):
    """
    Account dashboard payload.

    ``listings`` is passed through from the listings service unchanged.
    When that service cannot be reached the list is empty and
    ``listings_error`` carries a user-facing message.
    """
    profile: UserRead
    listings: List[Dict[str, Any]] = []
    counts: ListingCounts
    listings_error: Optional[str] = None


# ---------- Token schemas ----------

class Token(BaseModel):
    """
    Schema for JWT access token responses.

    Attributes
    ----------
    access_token : str
        Encoded JWT.
    token_type : str
        Token type, usually 'bearer'.
    """
    access_token: str
    token_type: str = "bearer"
