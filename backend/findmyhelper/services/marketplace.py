"""
FindMyHelper Backend — Marketplace Service
============================================

What:  Categories, tasks, service requests and reviews: the client and
       provider side of the marketplace once a provider is listed.
How:   Each operation loads what it needs through Storage, checks
       existence and ownership, then writes. Checks run in a fixed order
       so the same request always yields the same status code.
Who:   routes/categories.py, routes/tasks.py, routes/service_requests.py,
       routes/reviews.py.

Check order for POST /api/reviews:
    1. service request exists                  404
    2. caller is that request's client         403
    3. request status is `completed`           400
    4. request not reviewed yet                409

Counters and timestamps:
    - A task entering `completed` gets completed_at stamped once.
    - A service request entering `completed` for the first time bumps the
      provider's completed_jobs.
    - A review recomputes the provider's rating inside Storage.create_review.
"""

import logging
from typing import List, Optional

from findmyhelper.database import utcnow
from findmyhelper.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from findmyhelper.models import (
    ApprovalStatus,
    Review,
    ServiceCategory,
    ServiceRequest,
    ServiceRequestStatus,
    Task,
    TaskStatus,
    User,
)
from findmyhelper.schemas.review import ReviewCreate, ReviewCreatedResponse, ReviewResponse
from findmyhelper.schemas.service_request import (
    ClientServiceRequestView,
    ProviderServiceRequestView,
    ServiceRequestCreate,
    ServiceRequestResponse,
    ServiceRequestUpdate,
)
from findmyhelper.schemas.task import TaskCreate, TaskResponse, TaskUpdate
from findmyhelper.schemas.user import UserContactResponse
from findmyhelper.services.providers import build_provider_item
from findmyhelper.storage.base import Storage

logger = logging.getLogger(__name__)


def _plain(changes: dict) -> dict:
    """Store enum members as their string values."""
    return {k: getattr(v, "value", v) for k, v in changes.items()}


class MarketplaceService:
    def __init__(self, storage: Storage):
        self.storage = storage

    # ══════════════════════════════════════════════════════════════════════
    # Categories
    # ══════════════════════════════════════════════════════════════════════

    async def list_categories(self) -> List[ServiceCategory]:
        return await self.storage.list_categories()

    async def get_category(self, category_id: int) -> ServiceCategory:
        category = await self.storage.get_category(category_id)
        if category is None:
            raise NotFoundError(resource="category", resource_id=category_id)
        return category

    # ══════════════════════════════════════════════════════════════════════
    # Tasks
    # ══════════════════════════════════════════════════════════════════════

    async def _require_category(self, category_id: int) -> None:
        if await self.storage.get_category(category_id) is None:
            raise ValidationError("Unknown service category", field="categoryId")

    async def _owned_task(self, user: User, task_id: int) -> Task:
        task = await self.storage.get_task(task_id)
        if task is None:
            raise NotFoundError(resource="task", resource_id=task_id)
        if task.client_id != user.id:
            raise PermissionDeniedError("You can only modify your own tasks")
        return task

    async def create_task(self, user: User, data: TaskCreate) -> Task:
        await self._require_category(data.category_id)
        task = await self.storage.create_task(
            Task(
                client_id=user.id,
                category_id=data.category_id,
                title=data.title,
                description=data.description,
                location=data.location,
                budget=data.budget,
            )
        )
        logger.info("Task %s created by user %s", task.id, user.id)
        return task

    async def list_tasks(self, category_id: Optional[int] = None) -> List[Task]:
        return await self.storage.list_tasks(category_id=category_id)

    async def list_client_tasks(self, user: User) -> List[Task]:
        return await self.storage.list_tasks(client_id=user.id)

    async def get_task(self, task_id: int) -> Task:
        task = await self.storage.get_task(task_id)
        if task is None:
            raise NotFoundError(resource="task", resource_id=task_id)
        return task

    async def update_task(self, user: User, task_id: int, data: TaskUpdate) -> Task:
        task = await self._owned_task(user, task_id)

        changes = _plain(data.model_dump(exclude_unset=True, exclude_none=True))
        if "category_id" in changes:
            await self._require_category(changes["category_id"])
        if (
            changes.get("status") == TaskStatus.COMPLETED.value
            and task.status != TaskStatus.COMPLETED.value
            and task.completed_at is None
        ):
            changes["completed_at"] = utcnow()

        return await self.storage.update_task(task_id, changes) or task

    async def delete_task(self, user: User, task_id: int) -> None:
        await self._owned_task(user, task_id)
        await self.storage.delete_task(task_id)
        logger.info("Task %s deleted by user %s", task_id, user.id)

    # ══════════════════════════════════════════════════════════════════════
    # Service Requests
    # ══════════════════════════════════════════════════════════════════════

    async def create_service_request(
        self, user: User, data: ServiceRequestCreate
    ) -> ServiceRequest:
        provider = await self.storage.get_provider(data.provider_id)
        if provider is None or provider.approval_status != ApprovalStatus.APPROVED.value:
            raise NotFoundError(resource="service provider", resource_id=data.provider_id)
        if provider.user_id == user.id:
            raise ValidationError("You cannot request your own services", field="providerId")

        if data.task_id is not None:
            task = await self.storage.get_task(data.task_id)
            if task is None:
                raise NotFoundError(resource="task", resource_id=data.task_id)
            if task.client_id != user.id:
                raise PermissionDeniedError("You can only attach your own tasks to a request")

        request = await self.storage.create_service_request(
            ServiceRequest(
                client_id=user.id,
                provider_id=provider.id,
                task_id=data.task_id,
                message=data.message,
                proposed_price=data.proposed_price,
            )
        )
        logger.info(
            "Service request %s from user %s to provider %s", request.id, user.id, provider.id
        )
        return request

    async def _task_view(self, task_id: Optional[int]) -> Optional[TaskResponse]:
        if task_id is None:
            return None
        task = await self.storage.get_task(task_id)
        return TaskResponse.model_validate(task) if task else None

    async def list_for_client(self, user: User) -> List[ClientServiceRequestView]:
        views = []
        for request in await self.storage.list_service_requests(client_id=user.id):
            provider = await self.storage.get_provider(request.provider_id)
            views.append(
                ClientServiceRequestView(
                    **ServiceRequestResponse.model_validate(request).model_dump(),
                    provider=await build_provider_item(self.storage, provider) if provider else None,
                    task=await self._task_view(request.task_id),
                )
            )
        return views

    async def list_for_provider(self, user: User) -> List[ProviderServiceRequestView]:
        provider = await self.storage.get_provider_by_user_id(user.id)
        if provider is None:
            raise NotFoundError(resource="service provider profile")

        views = []
        for request in await self.storage.list_service_requests(provider_id=provider.id):
            client = await self.storage.get_user(request.client_id)
            views.append(
                ProviderServiceRequestView(
                    **ServiceRequestResponse.model_validate(request).model_dump(),
                    client=UserContactResponse.model_validate(client) if client else None,
                    task=await self._task_view(request.task_id),
                )
            )
        return views

    async def update_service_request(
        self, user: User, request_id: int, data: ServiceRequestUpdate
    ) -> ServiceRequest:
        request = await self.storage.get_service_request(request_id)
        if request is None:
            raise NotFoundError(resource="service request", resource_id=request_id)

        provider = await self.storage.get_provider(request.provider_id)
        is_provider = provider is not None and provider.user_id == user.id
        if request.client_id != user.id and not is_provider:
            raise PermissionDeniedError("Only the client or the provider can update this request")

        changes = _plain(data.model_dump(exclude_unset=True, exclude_none=True))
        if changes.get("status") != ServiceRequestStatus.COMPLETED.value:
            return await self.storage.update_service_request(request_id, changes) or request

        updated, newly_completed = await self.storage.complete_service_request(
            request_id, changes
        )
        if newly_completed:
            logger.info(
                "Service request %s completed; provider %s", request_id, request.provider_id
            )
        return updated or request

    # ══════════════════════════════════════════════════════════════════════
    # Reviews
    # ══════════════════════════════════════════════════════════════════════

    async def create_review(self, user: User, data: ReviewCreate) -> ReviewCreatedResponse:
        request = await self.storage.get_service_request(data.service_request_id)
        if request is None:
            raise NotFoundError(resource="service request", resource_id=data.service_request_id)
        if request.client_id != user.id:
            raise PermissionDeniedError("You can only review requests you placed")
        if request.status != ServiceRequestStatus.COMPLETED.value:
            raise ValidationError(
                "You can only review completed service requests",
                field="serviceRequestId",
                context={"status": request.status},
            )
        if await self.storage.get_review_by_service_request(request.id) is not None:
            raise ConflictError(
                "This service request has already been reviewed",
                context={"service_request_id": request.id},
            )

        review, provider = await self.storage.create_review(
            Review(
                service_request_id=request.id,
                client_id=user.id,
                provider_id=request.provider_id,
                rating=data.rating,
                comment=data.comment,
            )
        )
        logger.info(
            "Review %s for provider %s; rating now %.1f", review.id, provider.id, provider.rating
        )
        return ReviewCreatedResponse(
            review=ReviewResponse.model_validate(review),
            provider_rating=provider.rating,
        )
