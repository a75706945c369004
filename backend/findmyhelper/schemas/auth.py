"""
Registration and login payloads.

RegisterRequest covers both clients and providers. When
`isServiceProvider` is true, `categoryId` and `hourlyRate` become mandatory;
the rest of the application falls back to the same defaults as
ProviderCreate. The application is handed to the approval workflow after the
user row is created.
"""

from typing import Optional

from pydantic import EmailStr, Field, model_validator

from findmyhelper.schemas.common import ApiModel
from findmyhelper.schemas.provider import (
    Availability,
    HourlyRate,
    ProviderCreate,
    YearsOfExperience,
)
from findmyhelper.schemas.user import UserResponse


class RegisterRequest(ApiModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    confirm_password: str
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=30)
    is_service_provider: bool = False

    # Provider application fields, bounded exactly like ProviderCreate
    category_id: Optional[int] = None
    hourly_rate: Optional[HourlyRate] = None
    bio: Optional[str] = None
    years_of_experience: Optional[YearsOfExperience] = None
    availability: Optional[Availability] = None

    @model_validator(mode="after")
    def check_passwords_and_provider_fields(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        if self.is_service_provider:
            missing = [
                name
                for name in ("category_id", "hourly_rate")
                if getattr(self, name) is None
            ]
            if missing:
                raise ValueError(
                    "Service providers must supply: " + ", ".join(missing)
                )
        return self

    def provider_application(self) -> ProviderCreate:
        """The provider half of the payload, with unset fields defaulted."""
        fields = {
            "category_id": self.category_id,
            "hourly_rate": self.hourly_rate,
            "bio": self.bio,
            "years_of_experience": self.years_of_experience,
            "availability": self.availability,
        }
        return ProviderCreate(**{k: v for k, v in fields.items() if v is not None})


class RegisterResponse(ApiModel):
    message: str
    user: UserResponse
    warning: Optional[str] = None


class LoginRequest(ApiModel):
    # Username or email address
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
