"""User-facing views of accounts, plus the profile update payload."""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from findmyhelper.schemas.common import ApiModel


class UserResponse(ApiModel):
    """The caller's own account. Never includes the password hash or tokens."""

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    profile_picture: Optional[str] = None
    is_service_provider: bool
    is_admin: bool
    is_email_verified: bool
    created_at: datetime


class PublicUserResponse(ApiModel):
    """What other marketplace users may see about someone."""

    id: int
    username: str
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None


class UserContactResponse(PublicUserResponse):
    """Public view plus contact details, for admins and engaged parties."""

    email: str
    phone_number: Optional[str] = None


class UserUpdate(ApiModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(default=None, max_length=30)
    profile_picture: Optional[str] = None
