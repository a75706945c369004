"""
FindMyHelper Backend — Provider Directory
===========================================

What:  Read side of provider profiles (public directory, detail pages,
       review lists, the owner's own profile) and owner edits.
How:   Profiles are joined with their user and category in Python via the
       Storage interface, so both backends share the same assembly code.
Who:   routes/providers.py, routes/users.py, routes/uploads.py, and the
       approval workflow for its admin queue.

Visibility:
    Only `approved` providers appear in the directory, on detail pages and
    as review lists. Pending and rejected profiles return 404 there; the
    owner still sees their own profile through GET /api/user/provider.
"""

import logging
from typing import List, Optional

from findmyhelper.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from findmyhelper.models import ApprovalStatus, ServiceProvider, User
from findmyhelper.schemas.category import CategoryResponse
from findmyhelper.schemas.provider import (
    ProviderDetailResponse,
    ProviderListItem,
    ProviderResponse,
    ProviderUpdate,
)
from findmyhelper.schemas.review import ReviewWithClientResponse
from findmyhelper.schemas.user import PublicUserResponse, UserContactResponse
from findmyhelper.storage.base import Storage

logger = logging.getLogger(__name__)


async def build_provider_item(storage: Storage, provider: ServiceProvider) -> ProviderListItem:
    """Attach the provider's user and category to its profile."""
    user = await storage.get_user(provider.user_id)
    if user is None:
        raise NotFoundError(resource="user", resource_id=provider.user_id)
    category = await storage.get_category(provider.category_id)
    return ProviderListItem(
        **ProviderResponse.model_validate(provider).model_dump(),
        user=UserContactResponse.model_validate(user),
        category=CategoryResponse.model_validate(category) if category else None,
    )


class ProviderDirectory:
    def __init__(self, storage: Storage):
        self.storage = storage

    async def _get_approved(self, provider_id: int) -> ServiceProvider:
        provider = await self.storage.get_provider(provider_id)
        if provider is None or provider.approval_status != ApprovalStatus.APPROVED.value:
            raise NotFoundError(resource="service provider", resource_id=provider_id)
        return provider

    async def list_approved(self, category_id: Optional[int] = None) -> List[ProviderListItem]:
        providers = await self.storage.list_providers(
            approval_status=ApprovalStatus.APPROVED.value,
            category_id=category_id,
        )
        return [await build_provider_item(self.storage, p) for p in providers]

    async def list_reviews(self, provider_id: int) -> List[ReviewWithClientResponse]:
        await self._get_approved(provider_id)
        reviews = await self.storage.list_reviews_by_provider(provider_id)
        items = []
        for review in reviews:
            client = await self.storage.get_user(review.client_id)
            items.append(
                ReviewWithClientResponse.model_validate(review).model_copy(
                    update={
                        "client": PublicUserResponse.model_validate(client) if client else None
                    }
                )
            )
        return items

    async def get_public_detail(self, provider_id: int) -> ProviderDetailResponse:
        provider = await self._get_approved(provider_id)
        item = await build_provider_item(self.storage, provider)
        return ProviderDetailResponse(
            **item.model_dump(exclude={"user", "category"}),
            user=item.user,
            category=item.category,
            reviews=await self.list_reviews(provider_id),
        )

    async def get_own_profile(self, user: User) -> ProviderListItem:
        provider = await self.storage.get_provider_by_user_id(user.id)
        if provider is None:
            raise NotFoundError(resource="service provider profile")
        return await build_provider_item(self.storage, provider)

    async def update_profile(
        self, user: User, provider_id: int, data: ProviderUpdate
    ) -> ServiceProvider:
        provider = await self.storage.get_provider(provider_id)
        if provider is None:
            raise NotFoundError(resource="service provider", resource_id=provider_id)
        if provider.user_id != user.id:
            raise PermissionDeniedError("You can only edit your own provider profile")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "category_id" in changes and await self.storage.get_category(changes["category_id"]) is None:
            raise ValidationError("Unknown service category", field="categoryId")

        updated = await self.storage.update_provider(provider_id, changes)
        logger.info("Provider %s updated fields %s", provider_id, sorted(changes))
        return updated or provider

    async def attach_verification_image(self, user: User, url: str) -> Optional[ServiceProvider]:
        """Record an uploaded ID image on the caller's profile, if they have one."""
        provider = await self.storage.get_provider_by_user_id(user.id)
        if provider is None:
            return None
        return await self.storage.update_provider(provider.id, {"id_verification_image": url})
