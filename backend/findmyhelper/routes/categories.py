"""Service category taxonomy (read only; seeded at startup)."""

from typing import List

from fastapi import APIRouter, Depends

from findmyhelper.dependencies import get_marketplace
from findmyhelper.models import ServiceCategory
from findmyhelper.schemas.category import CategoryResponse
from findmyhelper.schemas.common import ErrorResponse
from findmyhelper.services.marketplace import MarketplaceService

router = APIRouter(prefix="/api", tags=["Categories"])


@router.get("/categories", response_model=List[CategoryResponse], summary="List categories")
async def list_categories(
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> List[ServiceCategory]:
    return await marketplace.list_categories()


@router.get(
    "/categories/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"description": "Category not found", "model": ErrorResponse}},
    summary="Get one category",
)
async def get_category(
    category_id: int,
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> ServiceCategory:
    return await marketplace.get_category(category_id)
