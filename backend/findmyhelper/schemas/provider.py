"""
Provider profile payloads and views.

Views come in three sizes:
    ProviderResponse          bare profile row (owner, workflow results)
    ProviderListItem          + user and category (directory, admin queue)
    ProviderDetailResponse    + reviews with their authors (public detail)
"""

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import Field

from findmyhelper.models.provider import ApprovalStatus
from findmyhelper.schemas.category import CategoryResponse
from findmyhelper.schemas.common import ApiModel
from findmyhelper.schemas.review import ReviewWithClientResponse
from findmyhelper.schemas.user import UserContactResponse


# Field bounds shared by every payload that carries a provider application
HourlyRate = Annotated[float, Field(ge=1)]
YearsOfExperience = Annotated[int, Field(ge=0, le=80)]
Availability = Annotated[str, Field(max_length=255)]


class ProviderCreate(ApiModel):
    category_id: int
    hourly_rate: HourlyRate
    bio: str = ""
    years_of_experience: YearsOfExperience = 0
    availability: Availability = ""
    # URL returned by POST /api/upload/id-verification; omitted means auto-approval
    id_verification_image: Optional[str] = None


class ProviderUpdate(ApiModel):
    """Owner-editable fields. Approval state is not editable here."""

    category_id: Optional[int] = None
    hourly_rate: Optional[HourlyRate] = None
    bio: Optional[str] = None
    years_of_experience: Optional[YearsOfExperience] = None
    availability: Optional[Availability] = None


class ApprovalDecision(ApiModel):
    """Body of the admin approve/reject endpoints."""

    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class ProviderResponse(ApiModel):
    id: int
    user_id: int
    category_id: int
    hourly_rate: float
    bio: str
    years_of_experience: int
    availability: str
    rating: float
    completed_jobs: int
    is_verified: bool
    approval_status: ApprovalStatus
    id_verification_image: Optional[str] = None
    admin_notes: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None


class ProviderListItem(ProviderResponse):
    user: UserContactResponse
    category: Optional[CategoryResponse] = None


class ProviderDetailResponse(ProviderListItem):
    reviews: List[ReviewWithClientResponse] = Field(default_factory=list)
