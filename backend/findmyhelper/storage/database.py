"""
FindMyHelper Backend — Relational Storage
===========================================

What:  Storage implemented with async SQLAlchemy 2.0 over any async
       driver (asyncpg in production, aiosqlite in tests).
How:   Every public method is one unit of work: open a session, run the
       statements, commit on success, roll back on error. Objects come back
       detached with their attributes loaded (expire_on_commit=False).

Error translation:
    IntegrityError        → ConflictError (unique constraint races)
    other SQLAlchemyError → DatabaseError (generic 500, details logged)
    connection failure during initialize() → StorageConfigurationError

Completion counting:
    complete_service_request flips status with a conditional UPDATE
    (status != completed) and bumps completed_jobs with a SQL-side
    `completed_jobs + 1`, so neither repeats nor concurrent completions
    lose or double an increment.

Review + rating atomicity:
    create_review locks the provider row (SELECT ... FOR UPDATE where the
    dialect supports it), inserts the review and recomputes SUM/COUNT of
    the provider's ratings in the same transaction.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, List, Mapping, Optional, Tuple, Type, TypeVar

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from findmyhelper.config import Settings, settings as default_settings
from findmyhelper.database import Base, create_engine, create_session_factory
from findmyhelper.exceptions import (
    ConflictError,
    DatabaseError,
    FindMyHelperError,
    NotFoundError,
    StorageConfigurationError,
)
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

EntityT = TypeVar("EntityT", bound=Base)


class DatabaseStorage(Storage):
    backend_name = "database"

    def __init__(
        self,
        database_url: Optional[str] = None,
        config: Optional[Settings] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        self.config = config or default_settings
        self.engine = engine or create_engine(database_url or self.config.database_url, self.config)
        self.session_factory = create_session_factory(self.engine)

    # ── Unit of Work ──────────────────────────────────────────────────────

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning("Integrity error: %s", e.orig)
                raise ConflictError(
                    "The change conflicts with existing data",
                    context={"error": str(e.orig)},
                ) from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Database error: %s", str(e))
                raise DatabaseError(context={"error": str(e)}) from e
            except FindMyHelperError:
                await session.rollback()
                raise

    async def _get(self, model: Type[EntityT], pk: Any) -> Optional[EntityT]:
        async with self._session() as session:
            return await session.get(model, pk)

    async def _first(self, stmt) -> Optional[Any]:
        async with self._session() as session:
            result = await session.execute(stmt.limit(1))
            return result.scalars().first()

    async def _all(self, stmt) -> List[Any]:
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _add(self, entity: EntityT) -> EntityT:
        async with self._session() as session:
            session.add(entity)
            await session.flush()
        return entity

    async def _update(
        self, model: Type[EntityT], pk: Any, changes: Mapping[str, Any]
    ) -> Optional[EntityT]:
        async with self._session() as session:
            entity = await session.get(model, pk)
            if entity is None:
                return None
            for field, value in changes.items():
                setattr(entity, field, value)
        return entity

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        try:
            async with self.engine.begin() as conn:
                if self.config.db_auto_create_schema:
                    await conn.run_sync(Base.metadata.create_all)
                else:
                    await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StorageConfigurationError(
                "Could not connect to the database",
                context={"url": self.engine.url.render_as_string(hide_password=True), "error": str(e)},
            ) from e

        async with self._session() as session:
            count = await session.scalar(select(func.count(ServiceCategory.id)))
            if not count:
                session.add_all(
                    ServiceCategory(name=name, description=description, icon=icon)
                    for name, description, icon in DEFAULT_CATEGORIES
                )
                logger.info("Seeded %d service categories", len(DEFAULT_CATEGORIES))

    async def close(self) -> None:
        await self.engine.dispose()

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    # ── Users ─────────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self._get(User, user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._first(select(User).where(User.username == username))

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._first(select(User).where(User.email == email))

    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[User]:
        return await self._first(select(User).where(User.firebase_uid == firebase_uid))

    async def get_user_by_verification_token(self, token: str) -> Optional[User]:
        return await self._first(select(User).where(User.email_verification_token == token))

    async def create_user(self, user: User) -> User:
        return await self._add(user)

    async def update_user(self, user_id: int, changes: Mapping[str, Any]) -> Optional[User]:
        return await self._update(User, user_id, changes)

    async def list_admins(self) -> List[User]:
        return await self._all(select(User).where(User.is_admin.is_(True)).order_by(User.id))

    # ── Categories ────────────────────────────────────────────────────────

    async def list_categories(self) -> List[ServiceCategory]:
        return await self._all(select(ServiceCategory).order_by(ServiceCategory.id))

    async def get_category(self, category_id: int) -> Optional[ServiceCategory]:
        return await self._get(ServiceCategory, category_id)

    async def create_category(self, category: ServiceCategory) -> ServiceCategory:
        return await self._add(category)

    # ── Service Providers ─────────────────────────────────────────────────

    async def create_provider(self, provider: ServiceProvider) -> ServiceProvider:
        return await self._add(provider)

    async def get_provider(self, provider_id: int) -> Optional[ServiceProvider]:
        return await self._get(ServiceProvider, provider_id)

    async def get_provider_by_user_id(self, user_id: int) -> Optional[ServiceProvider]:
        return await self._first(select(ServiceProvider).where(ServiceProvider.user_id == user_id))

    async def list_providers(
        self,
        approval_status: Optional[str] = None,
        category_id: Optional[int] = None,
    ) -> List[ServiceProvider]:
        stmt = select(ServiceProvider)
        if approval_status is not None:
            stmt = stmt.where(ServiceProvider.approval_status == approval_status)
        if category_id is not None:
            stmt = stmt.where(ServiceProvider.category_id == category_id)
        return await self._all(stmt.order_by(ServiceProvider.id))

    async def update_provider(
        self, provider_id: int, changes: Mapping[str, Any]
    ) -> Optional[ServiceProvider]:
        return await self._update(ServiceProvider, provider_id, changes)

    async def transition_provider(
        self,
        provider_id: int,
        expected_status: str,
        changes: Mapping[str, Any],
    ) -> Optional[ServiceProvider]:
        async with self._session() as session:
            result = await session.execute(
                update(ServiceProvider)
                .where(
                    ServiceProvider.id == provider_id,
                    ServiceProvider.approval_status == expected_status,
                )
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                return None
            return await session.get(ServiceProvider, provider_id, populate_existing=True)

    # ── Tasks ─────────────────────────────────────────────────────────────

    async def create_task(self, task: Task) -> Task:
        return await self._add(task)

    async def get_task(self, task_id: int) -> Optional[Task]:
        return await self._get(Task, task_id)

    async def list_tasks(
        self,
        client_id: Optional[int] = None,
        category_id: Optional[int] = None,
    ) -> List[Task]:
        stmt = select(Task)
        if client_id is not None:
            stmt = stmt.where(Task.client_id == client_id)
        if category_id is not None:
            stmt = stmt.where(Task.category_id == category_id)
        return await self._all(stmt.order_by(Task.id))

    async def update_task(self, task_id: int, changes: Mapping[str, Any]) -> Optional[Task]:
        return await self._update(Task, task_id, changes)

    async def delete_task(self, task_id: int) -> bool:
        async with self._session() as session:
            task = await session.get(Task, task_id)
            if task is None:
                return False
            # Explicit so dialects without enforced FKs (SQLite) behave the same
            requests = await session.execute(
                select(ServiceRequest).where(ServiceRequest.task_id == task_id)
            )
            for request in requests.scalars():
                request.task_id = None
            await session.delete(task)
        return True

    # ── Service Requests ──────────────────────────────────────────────────

    async def create_service_request(self, request: ServiceRequest) -> ServiceRequest:
        return await self._add(request)

    async def get_service_request(self, request_id: int) -> Optional[ServiceRequest]:
        return await self._get(ServiceRequest, request_id)

    async def list_service_requests(
        self,
        client_id: Optional[int] = None,
        provider_id: Optional[int] = None,
    ) -> List[ServiceRequest]:
        stmt = select(ServiceRequest)
        if client_id is not None:
            stmt = stmt.where(ServiceRequest.client_id == client_id)
        if provider_id is not None:
            stmt = stmt.where(ServiceRequest.provider_id == provider_id)
        return await self._all(stmt.order_by(ServiceRequest.id))

    async def update_service_request(
        self, request_id: int, changes: Mapping[str, Any]
    ) -> Optional[ServiceRequest]:
        return await self._update(ServiceRequest, request_id, changes)

    async def complete_service_request(
        self, request_id: int, changes: Mapping[str, Any]
    ) -> Tuple[Optional[ServiceRequest], bool]:
        completed = ServiceRequestStatus.COMPLETED.value
        async with self._session() as session:
            result = await session.execute(
                update(ServiceRequest)
                .where(ServiceRequest.id == request_id, ServiceRequest.status != completed)
                .values({**changes, "status": completed})
                .execution_options(synchronize_session=False)
            )
            newly_completed = bool(result.rowcount)
            request = await session.get(ServiceRequest, request_id, populate_existing=True)
            if request is None:
                return None, False

            if newly_completed:
                await session.execute(
                    update(ServiceProvider)
                    .where(ServiceProvider.id == request.provider_id)
                    .values(completed_jobs=ServiceProvider.completed_jobs + 1)
                    .execution_options(synchronize_session=False)
                )
            else:
                for field, value in changes.items():
                    setattr(request, field, value)
        return request, newly_completed

    # ── Reviews ───────────────────────────────────────────────────────────

    async def create_review(self, review: Review) -> Tuple[Review, ServiceProvider]:
        async with self._session() as session:
            provider = await session.scalar(
                select(ServiceProvider)
                .where(ServiceProvider.id == review.provider_id)
                .with_for_update()
            )
            if provider is None:
                raise NotFoundError(resource="service provider", resource_id=review.provider_id)

            session.add(review)
            await session.flush()

            total, count = (
                await session.execute(
                    select(func.coalesce(func.sum(Review.rating), 0), func.count(Review.id))
                    .where(Review.provider_id == provider.id)
                )
            ).one()
            provider.rating = mean_rating(total, count)

        return review, provider

    async def list_reviews_by_provider(self, provider_id: int) -> List[Review]:
        return await self._all(
            select(Review).where(Review.provider_id == provider_id).order_by(Review.id)
        )

    async def get_review_by_service_request(self, request_id: int) -> Optional[Review]:
        return await self._first(select(Review).where(Review.service_request_id == request_id))

    # ── Sessions ──────────────────────────────────────────────────────────

    async def create_session(self, session: UserSession) -> UserSession:
        return await self._add(session)

    async def get_session(self, session_id: str) -> Optional[UserSession]:
        return await self._get(UserSession, session_id)

    async def delete_session(self, session_id: str) -> None:
        async with self._session() as session:
            await session.execute(delete(UserSession).where(UserSession.id == session_id))

    async def purge_expired_sessions(self, now: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(UserSession).where(UserSession.expires_at < now)
            )
            return result.rowcount or 0
