from datetime import datetime
from typing import Optional

from pydantic import Field

from findmyhelper.schemas.common import ApiModel
from findmyhelper.schemas.user import PublicUserResponse


class ReviewCreate(ApiModel):
    service_request_id: int
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)


class ReviewResponse(ApiModel):
    id: int
    service_request_id: int
    client_id: int
    provider_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class ReviewWithClientResponse(ReviewResponse):
    client: Optional[PublicUserResponse] = None


class ReviewCreatedResponse(ApiModel):
    review: ReviewResponse
    provider_rating: float = Field(description="Provider's rating after this review")
