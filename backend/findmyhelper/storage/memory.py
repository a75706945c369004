"""
FindMyHelper Backend — In-Memory Storage
==========================================

What:  Storage backed by plain dicts keyed by per-entity counters that
       start at 1.
Who:   Tests, demos, and development runs without a database
       (STORAGE_BACKEND=memory, or the non-production `auto` fallback).

Everything is lost when the process exits. Writes are only safe inside a
single process; create_review is serialized with an asyncio.Lock so
concurrent reviews cannot interleave between insert and rating update.
"""

import asyncio
import itertools
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, TypeVar

from findmyhelper.database import ensure_aware
from findmyhelper.exceptions import ConflictError, NotFoundError
from findmyhelper.models import (
    Review,
    ServiceCategory,
    ServiceProvider,
    ServiceRequest,
    ServiceRequestStatus,
    Task,
    User,
    UserSession,
)
from findmyhelper.storage.base import DEFAULT_CATEGORIES, Storage, mean_rating

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")


class MemoryStorage(Storage):
    backend_name = "memory"

    def __init__(self, seed_categories: bool = True):
        self._seed = seed_categories
        self._ids: Dict[str, Iterator[int]] = defaultdict(lambda: itertools.count(1))

        self._users: Dict[int, User] = {}
        self._categories: Dict[int, ServiceCategory] = {}
        self._providers: Dict[int, ServiceProvider] = {}
        self._tasks: Dict[int, Task] = {}
        self._service_requests: Dict[int, ServiceRequest] = {}
        self._reviews: Dict[int, Review] = {}
        self._sessions: Dict[str, UserSession] = {}

        self._review_lock = asyncio.Lock()

    # ── Helpers ───────────────────────────────────────────────────────────

    def _insert(self, table: str, rows: Dict[int, EntityT], entity: EntityT) -> EntityT:
        entity.id = next(self._ids[table])
        rows[entity.id] = entity
        return entity

    @staticmethod
    def _apply(entity: Optional[EntityT], changes: Mapping[str, Any]) -> Optional[EntityT]:
        if entity is None:
            return None
        for field, value in changes.items():
            setattr(entity, field, value)
        return entity

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        if self._seed and not self._categories:
            for name, description, icon in DEFAULT_CATEGORIES:
                await self.create_category(
                    ServiceCategory(name=name, description=description, icon=icon)
                )
            logger.info("Seeded %d service categories (memory)", len(DEFAULT_CATEGORIES))

    async def close(self) -> None:
        return None

    async def ping(self) -> bool:
        return True

    # ── Users ─────────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.username == username), None)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.email == email), None)

    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.firebase_uid == firebase_uid), None)

    async def get_user_by_verification_token(self, token: str) -> Optional[User]:
        return next(
            (u for u in self._users.values() if u.email_verification_token == token),
            None,
        )

    async def create_user(self, user: User) -> User:
        return self._insert("users", self._users, user)

    async def update_user(self, user_id: int, changes: Mapping[str, Any]) -> Optional[User]:
        return self._apply(self._users.get(user_id), changes)

    async def list_admins(self) -> List[User]:
        return [u for u in self._users.values() if u.is_admin]

    # ── Categories ────────────────────────────────────────────────────────

    async def list_categories(self) -> List[ServiceCategory]:
        return list(self._categories.values())

    async def get_category(self, category_id: int) -> Optional[ServiceCategory]:
        return self._categories.get(category_id)

    async def create_category(self, category: ServiceCategory) -> ServiceCategory:
        return self._insert("categories", self._categories, category)

    # ── Service Providers ─────────────────────────────────────────────────

    async def create_provider(self, provider: ServiceProvider) -> ServiceProvider:
        if await self.get_provider_by_user_id(provider.user_id) is not None:
            raise ConflictError(
                "User already has a service provider profile",
                context={"user_id": provider.user_id},
            )
        return self._insert("providers", self._providers, provider)

    async def get_provider(self, provider_id: int) -> Optional[ServiceProvider]:
        return self._providers.get(provider_id)

    async def get_provider_by_user_id(self, user_id: int) -> Optional[ServiceProvider]:
        return next((p for p in self._providers.values() if p.user_id == user_id), None)

    async def list_providers(
        self,
        approval_status: Optional[str] = None,
        category_id: Optional[int] = None,
    ) -> List[ServiceProvider]:
        return [
            p
            for p in self._providers.values()
            if (approval_status is None or p.approval_status == approval_status)
            and (category_id is None or p.category_id == category_id)
        ]

    async def update_provider(
        self, provider_id: int, changes: Mapping[str, Any]
    ) -> Optional[ServiceProvider]:
        return self._apply(self._providers.get(provider_id), changes)

    async def transition_provider(
        self,
        provider_id: int,
        expected_status: str,
        changes: Mapping[str, Any],
    ) -> Optional[ServiceProvider]:
        # No await between check and write, so this is atomic on the event loop
        provider = self._providers.get(provider_id)
        if provider is None or provider.approval_status != expected_status:
            return None
        return self._apply(provider, changes)

    # ── Tasks ─────────────────────────────────────────────────────────────

    async def create_task(self, task: Task) -> Task:
        return self._insert("tasks", self._tasks, task)

    async def get_task(self, task_id: int) -> Optional[Task]:
        return self._tasks.get(task_id)

    async def list_tasks(
        self,
        client_id: Optional[int] = None,
        category_id: Optional[int] = None,
    ) -> List[Task]:
        return [
            t
            for t in self._tasks.values()
            if (client_id is None or t.client_id == client_id)
            and (category_id is None or t.category_id == category_id)
        ]

    async def update_task(self, task_id: int, changes: Mapping[str, Any]) -> Optional[Task]:
        return self._apply(self._tasks.get(task_id), changes)

    async def delete_task(self, task_id: int) -> bool:
        if self._tasks.pop(task_id, None) is None:
            return False
        for request in self._service_requests.values():
            if request.task_id == task_id:
                request.task_id = None
        return True

    # ── Service Requests ──────────────────────────────────────────────────

    async def create_service_request(self, request: ServiceRequest) -> ServiceRequest:
        return self._insert("service_requests", self._service_requests, request)

    async def get_service_request(self, request_id: int) -> Optional[ServiceRequest]:
        return self._service_requests.get(request_id)

    async def list_service_requests(
        self,
        client_id: Optional[int] = None,
        provider_id: Optional[int] = None,
    ) -> List[ServiceRequest]:
        return [
            r
            for r in self._service_requests.values()
            if (client_id is None or r.client_id == client_id)
            and (provider_id is None or r.provider_id == provider_id)
        ]

    async def update_service_request(
        self, request_id: int, changes: Mapping[str, Any]
    ) -> Optional[ServiceRequest]:
        return self._apply(self._service_requests.get(request_id), changes)

    async def complete_service_request(
        self, request_id: int, changes: Mapping[str, Any]
    ) -> Tuple[Optional[ServiceRequest], bool]:
        # No await between check and write, so this is atomic on the event loop
        request = self._service_requests.get(request_id)
        if request is None:
            return None, False
        newly_completed = request.status != ServiceRequestStatus.COMPLETED.value
        self._apply(request, {**changes, "status": ServiceRequestStatus.COMPLETED.value})
        if newly_completed:
            provider = self._providers.get(request.provider_id)
            if provider is not None:
                provider.completed_jobs += 1
        return request, newly_completed

    # ── Reviews ───────────────────────────────────────────────────────────

    async def create_review(self, review: Review) -> Tuple[Review, ServiceProvider]:
        async with self._review_lock:
            provider = self._providers.get(review.provider_id)
            if provider is None:
                raise NotFoundError(resource="service provider", resource_id=review.provider_id)
            if await self.get_review_by_service_request(review.service_request_id) is not None:
                raise ConflictError(
                    "This service request has already been reviewed",
                    context={"service_request_id": review.service_request_id},
                )

            self._insert("reviews", self._reviews, review)

            ratings = [r.rating for r in self._reviews.values() if r.provider_id == provider.id]
            provider.rating = mean_rating(sum(ratings), len(ratings))
            return review, provider

    async def list_reviews_by_provider(self, provider_id: int) -> List[Review]:
        return [r for r in self._reviews.values() if r.provider_id == provider_id]

    async def get_review_by_service_request(self, request_id: int) -> Optional[Review]:
        return next(
            (r for r in self._reviews.values() if r.service_request_id == request_id),
            None,
        )

    # ── Sessions ──────────────────────────────────────────────────────────

    async def create_session(self, session: UserSession) -> UserSession:
        self._sessions[session.id] = session
        return session

    async def get_session(self, session_id: str) -> Optional[UserSession]:
        return self._sessions.get(session_id)

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def purge_expired_sessions(self, now: datetime) -> int:
        expired = [
            sid for sid, s in self._sessions.items() if ensure_aware(s.expires_at) < now
        ]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)
