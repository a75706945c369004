"""POST /api/reviews: rate a completed service request."""

from fastapi import APIRouter, Depends, status

from findmyhelper.dependencies import get_current_user, get_marketplace
from findmyhelper.models import User
from findmyhelper.schemas.common import ErrorResponse
from findmyhelper.schemas.review import ReviewCreate, ReviewCreatedResponse
from findmyhelper.services.marketplace import MarketplaceService

router = APIRouter(prefix="/api", tags=["Reviews"])


@router.post(
    "/reviews",
    status_code=status.HTTP_201_CREATED,
    response_model=ReviewCreatedResponse,
    responses={
        400: {"description": "Request is not completed", "model": ErrorResponse},
        403: {"description": "Caller is not the request's client", "model": ErrorResponse},
        404: {"description": "Service request not found", "model": ErrorResponse},
        409: {"description": "Request already reviewed", "model": ErrorResponse},
    },
    summary="Review a completed service request",
    description="Stores the review and returns the provider's recomputed rating.",
)
async def create_review(
    data: ReviewCreate,
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> ReviewCreatedResponse:
    return await marketplace.create_review(user, data)
