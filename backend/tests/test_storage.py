"""
FindMyHelper Backend — Storage Contract Tests
===============================================

What:  The Storage contract, run against both backends.
How:   The `backend` fixture is parametrized: MemoryStorage, and
       DatabaseStorage on a throwaway SQLite file via aiosqlite.

What we test:
    ✅ Categories are seeded once
    ✅ Missing rows come back as None, never an exception
    ✅ transition_provider is a compare-and-set on approval_status
    ✅ create_review recomputes the rating and refuses duplicates
    ✅ Completion bumps completed_jobs once per request, even concurrently
    ✅ Deleting a task detaches requests that referenced it
    ✅ Expired sessions are purged
    ✅ build_storage honours STORAGE_BACKEND and the auto fallback
"""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from findmyhelper.database import utcnow
from findmyhelper.exceptions import ConflictError, StorageConfigurationError
from findmyhelper.models import (
    Review,
    ServiceProvider,
    ServiceRequest,
    Task,
    User,
    UserSession,
)
from findmyhelper.storage import DatabaseStorage, MemoryStorage, build_storage
from findmyhelper.storage.base import DEFAULT_CATEGORIES


@pytest_asyncio.fixture(params=["memory", "database"])
async def backend(request, tmp_path, test_settings):
    if request.param == "memory":
        store = MemoryStorage()
    else:
        store = DatabaseStorage(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'contract.db'}",
            config=test_settings,
        )
    await store.initialize()
    yield store
    await store.close()


async def seed_provider(store, username="pat"):
    user = await store.create_user(
        User(username=username, email=f"{username}@example.com", first_name="P", last_name="T")
    )
    provider = await store.create_provider(
        ServiceProvider(
            user_id=user.id,
            category_id=1,
            hourly_rate=30.0,
            bio="bio",
            years_of_experience=3,
            availability="weekends",
        )
    )
    return user, provider


async def seed_request(store, provider, client_id, task_id=None, status="completed"):
    return await store.create_service_request(
        ServiceRequest(
            client_id=client_id,
            provider_id=provider.id,
            task_id=task_id,
            message="help",
            status=status,
        )
    )


class TestStorageContract:
    @pytest.mark.asyncio
    async def test_categories_seeded_once(self, backend):
        await backend.initialize()
        categories = await backend.list_categories()
        assert len(categories) == len(DEFAULT_CATEGORIES)
        assert categories[0].id == 1

    @pytest.mark.asyncio
    async def test_missing_rows_are_none(self, backend):
        assert await backend.get_user(42) is None
        assert await backend.get_provider(42) is None
        assert await backend.get_task(42) is None
        assert await backend.update_user(42, {"first_name": "x"}) is None
        assert await backend.get_session("nope") is None

    @pytest.mark.asyncio
    async def test_user_lookups(self, backend):
        user = await backend.create_user(
            User(
                username="cathy",
                email="cathy@example.com",
                first_name="C",
                last_name="D",
                email_verification_token="tok",
                firebase_uid="uid",
            )
        )
        assert user.id is not None
        assert user.is_email_verified is False
        assert (await backend.get_user_by_username("cathy")).id == user.id
        assert (await backend.get_user_by_email("cathy@example.com")).id == user.id
        assert (await backend.get_user_by_verification_token("tok")).id == user.id
        assert (await backend.get_user_by_firebase_uid("uid")).id == user.id

        await backend.update_user(user.id, {"is_admin": True})
        assert [a.id for a in await backend.list_admins()] == [user.id]

    @pytest.mark.asyncio
    async def test_transition_is_compare_and_set(self, backend):
        _, provider = await seed_provider(backend)

        first = await backend.transition_provider(
            provider.id, "pending", {"approval_status": "approved", "is_verified": True}
        )
        assert first.approval_status == "approved"
        assert first.is_verified is True

        second = await backend.transition_provider(
            provider.id, "pending", {"approval_status": "rejected"}
        )
        assert second is None
        assert (await backend.get_provider(provider.id)).approval_status == "approved"

    @pytest.mark.asyncio
    async def test_provider_filters(self, backend):
        _, p1 = await seed_provider(backend, "pat")
        _, p2 = await seed_provider(backend, "sam")
        await backend.transition_provider(p2.id, "pending", {"approval_status": "approved"})

        approved = await backend.list_providers(approval_status="approved")
        assert [p.id for p in approved] == [p2.id]
        assert await backend.list_providers(approval_status="approved", category_id=2) == []
        assert len(await backend.list_providers()) == 2

    @pytest.mark.asyncio
    async def test_review_recomputes_rating(self, backend):
        client = await backend.create_user(
            User(username="cathy", email="c@example.com", first_name="C", last_name="D")
        )
        _, provider = await seed_provider(backend)

        ratings = [5, 4, 4]
        for rating in ratings:
            request = await seed_request(backend, provider, client.id)
            review, updated = await backend.create_review(
                Review(
                    service_request_id=request.id,
                    client_id=client.id,
                    provider_id=provider.id,
                    rating=rating,
                )
            )
        assert updated.rating == 4.3
        assert (await backend.get_provider(provider.id)).rating == 4.3
        assert [r.rating for r in await backend.list_reviews_by_provider(provider.id)] == ratings
        assert (await backend.get_review_by_service_request(request.id)).id == review.id

        with pytest.raises(ConflictError):
            await backend.create_review(
                Review(
                    service_request_id=request.id,
                    client_id=client.id,
                    provider_id=provider.id,
                    rating=1,
                )
            )
        assert (await backend.get_provider(provider.id)).rating == 4.3

    @pytest.mark.asyncio
    async def test_completion_counts_once_per_request(self, backend):
        client = await backend.create_user(
            User(username="cathy", email="c@example.com", first_name="C", last_name="D")
        )
        _, provider = await seed_provider(backend)
        first = await seed_request(backend, provider, client.id, status="accepted")
        second = await seed_request(backend, provider, client.id, status="in_progress")

        results = await asyncio.gather(
            backend.complete_service_request(first.id, {}),
            backend.complete_service_request(second.id, {"proposed_price": 80.0}),
            backend.complete_service_request(first.id, {}),
        )

        assert sorted(flag for _, flag in results) == [False, True, True]
        assert (await backend.get_provider(provider.id)).completed_jobs == 2
        done = await backend.get_service_request(second.id)
        assert done.status == "completed"
        assert done.proposed_price == 80.0

        again, newly_completed = await backend.complete_service_request(first.id, {})
        assert again.status == "completed"
        assert newly_completed is False
        assert (await backend.get_provider(provider.id)).completed_jobs == 2
        assert await backend.complete_service_request(999, {}) == (None, False)

    @pytest.mark.asyncio
    async def test_delete_task_detaches_requests(self, backend):
        client = await backend.create_user(
            User(username="cathy", email="c@example.com", first_name="C", last_name="D")
        )
        _, provider = await seed_provider(backend)
        task = await backend.create_task(
            Task(
                client_id=client.id,
                category_id=1,
                title="t",
                description="d",
                location="l",
            )
        )
        request = await seed_request(backend, provider, client.id, task_id=task.id)

        assert await backend.delete_task(task.id) is True
        assert await backend.get_task(task.id) is None
        assert (await backend.get_service_request(request.id)).task_id is None
        assert await backend.delete_task(task.id) is False

    @pytest.mark.asyncio
    async def test_sessions(self, backend):
        user = await backend.create_user(
            User(username="cathy", email="c@example.com", first_name="C", last_name="D")
        )
        now = utcnow()
        await backend.create_session(
            UserSession(id="live", user_id=user.id, expires_at=now + timedelta(hours=1))
        )
        await backend.create_session(
            UserSession(id="dead", user_id=user.id, expires_at=now - timedelta(hours=1))
        )

        assert await backend.purge_expired_sessions(now) == 1
        assert await backend.get_session("dead") is None
        assert (await backend.get_session("live")).user_id == user.id

        await backend.delete_session("live")
        assert await backend.get_session("live") is None

    @pytest.mark.asyncio
    async def test_ping(self, backend):
        assert await backend.ping() is True


class TestBuildStorage:
    @pytest.mark.asyncio
    async def test_memory(self, test_settings):
        store = await build_storage(test_settings)
        assert store.backend_name == "memory"
        assert len(await store.list_categories()) == len(DEFAULT_CATEGORIES)

    @pytest.mark.asyncio
    async def test_auto_falls_back_outside_production(self, test_settings):
        config = test_settings.model_copy(
            update={
                "storage_backend": "auto",
                "database_url": "sqlite+aiosqlite:////nonexistent-dir/x/y.db",
            }
        )
        store = await build_storage(config)
        assert store.backend_name == "memory"

    @pytest.mark.asyncio
    async def test_database_choice_is_strict(self, test_settings):
        config = test_settings.model_copy(
            update={
                "storage_backend": "database",
                "database_url": "sqlite+aiosqlite:////nonexistent-dir/x/y.db",
            }
        )
        with pytest.raises(StorageConfigurationError):
            await build_storage(config)

    @pytest.mark.asyncio
    async def test_auto_never_falls_back_in_production(self, test_settings):
        config = test_settings.model_copy(
            update={
                "environment": "production",
                "storage_backend": "auto",
                "database_url": "sqlite+aiosqlite:////nonexistent-dir/x/y.db",
            }
        )
        with pytest.raises(StorageConfigurationError):
            await build_storage(config)

    @pytest.mark.asyncio
    async def test_database_on_sqlite(self, tmp_path, test_settings):
        config = test_settings.model_copy(
            update={
                "storage_backend": "database",
                "database_url": f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
            }
        )
        store = await build_storage(config)
        try:
            assert store.backend_name == "database"
        finally:
            await store.close()
