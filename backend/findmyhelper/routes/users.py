"""Routes for the logged-in user's own account and provider profile."""

from fastapi import APIRouter, Depends

from findmyhelper.dependencies import (
    get_current_user,
    get_identity_service,
    get_provider_directory,
)
from findmyhelper.models import User
from findmyhelper.schemas.common import ErrorResponse
from findmyhelper.schemas.provider import ProviderListItem
from findmyhelper.schemas.user import UserResponse, UserUpdate
from findmyhelper.services.identity import IdentityService
from findmyhelper.services.providers import ProviderDirectory

router = APIRouter(prefix="/api", tags=["Users"])


@router.get(
    "/user",
    response_model=UserResponse,
    responses={401: {"description": "Not logged in", "model": ErrorResponse}},
    summary="Get the current user",
)
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@router.put(
    "/user",
    response_model=UserResponse,
    responses={
        400: {"description": "Invalid input or email in use", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
    },
    summary="Update the current user's profile",
)
async def update_me(
    data: UserUpdate,
    user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
) -> User:
    return await identity.update_profile(user, data)


@router.get(
    "/user/provider",
    response_model=ProviderListItem,
    responses={
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "No provider profile", "model": ErrorResponse},
    },
    summary="Get the current user's provider profile, whatever its status",
)
async def get_my_provider_profile(
    user: User = Depends(get_current_user),
    directory: ProviderDirectory = Depends(get_provider_directory),
) -> ProviderListItem:
    return await directory.get_own_profile(user)
