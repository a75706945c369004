"""
FindMyHelper Backend — Provider Routes
========================================

What:  Public provider directory plus the provider's own application and
       profile edits.
Who:   Browse/search pages (public), the "become a provider" form and the
       provider dashboard (session).

Only approved providers are visible through the public GET routes.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from findmyhelper.dependencies import (
    get_approval_workflow,
    get_current_user,
    get_provider_directory,
)
from findmyhelper.models import ServiceProvider, User
from findmyhelper.schemas.common import ErrorResponse
from findmyhelper.schemas.provider import (
    ProviderCreate,
    ProviderDetailResponse,
    ProviderListItem,
    ProviderResponse,
    ProviderUpdate,
)
from findmyhelper.schemas.review import ReviewWithClientResponse
from findmyhelper.services.approval import ProviderApprovalWorkflow
from findmyhelper.services.providers import ProviderDirectory

router = APIRouter(prefix="/api", tags=["Providers"])


@router.get(
    "/providers",
    response_model=List[ProviderListItem],
    summary="List approved providers",
)
async def list_providers(
    directory: ProviderDirectory = Depends(get_provider_directory),
) -> List[ProviderListItem]:
    return await directory.list_approved()


@router.get(
    "/providers/category/{category_id}",
    response_model=List[ProviderListItem],
    summary="List approved providers in one category",
)
async def list_providers_by_category(
    category_id: int,
    directory: ProviderDirectory = Depends(get_provider_directory),
) -> List[ProviderListItem]:
    return await directory.list_approved(category_id=category_id)


@router.get(
    "/providers/{provider_id}",
    response_model=ProviderDetailResponse,
    responses={404: {"description": "No approved provider with this id", "model": ErrorResponse}},
    summary="Get an approved provider with user, category and reviews",
)
async def get_provider(
    provider_id: int,
    directory: ProviderDirectory = Depends(get_provider_directory),
) -> ProviderDetailResponse:
    return await directory.get_public_detail(provider_id)


@router.get(
    "/providers/{provider_id}/reviews",
    response_model=List[ReviewWithClientResponse],
    responses={404: {"description": "No approved provider with this id", "model": ErrorResponse}},
    summary="List reviews for an approved provider",
)
async def list_provider_reviews(
    provider_id: int,
    directory: ProviderDirectory = Depends(get_provider_directory),
) -> List[ReviewWithClientResponse]:
    return await directory.list_reviews(provider_id)


@router.post(
    "/providers",
    status_code=status.HTTP_201_CREATED,
    response_model=ProviderResponse,
    responses={
        400: {"description": "Profile exists or unknown category", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
    },
    summary="Apply to become a service provider",
    description=(
        "Creates the caller's provider profile. Without idVerificationImage the "
        "profile is approved immediately; with one it waits for an admin."
    ),
)
async def create_provider(
    data: ProviderCreate,
    user: User = Depends(get_current_user),
    workflow: ProviderApprovalWorkflow = Depends(get_approval_workflow),
) -> ServiceProvider:
    return await workflow.submit(user, data)


@router.put(
    "/providers/{provider_id}",
    response_model=ProviderResponse,
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        403: {"description": "Not your profile", "model": ErrorResponse},
        404: {"description": "Provider not found", "model": ErrorResponse},
    },
    summary="Edit your provider profile",
)
async def update_provider(
    provider_id: int,
    data: ProviderUpdate,
    user: User = Depends(get_current_user),
    directory: ProviderDirectory = Depends(get_provider_directory),
) -> ServiceProvider:
    return await directory.update_profile(user, provider_id, data)
