"""
FindMyHelper Backend — Provider Approval Workflow Tests
=========================================================

What:  Submission, auto-approval, admin approve/reject and the queue.
How:   Service-level tests call ProviderApprovalWorkflow directly; route
       tests go through /api/providers and /api/admin.

What we test:
    ✅ No verification image → approved at once, reviewed_by stays empty
    ✅ With an image → pending, every admin alerted
    ✅ Approve/reject stamp reviewer and time, send one outcome email
    ✅ Reject requires notes
    ✅ Both outcomes are terminal: a second decision is a 409
    ✅ Non-admins get 403, missing providers 404
    ✅ Pending/rejected providers never show in the public directory
    ✅ Optional application fields default to empty, bounds are enforced
"""

import pytest

from conftest import create_user, login, provider_payload
from findmyhelper.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from findmyhelper.schemas.provider import ProviderCreate
from findmyhelper.services.approval import AUTO_APPROVAL_NOTE, ProviderApprovalWorkflow

ID_IMAGE = "/api/files/id/abc_passport.jpg"


def application(**overrides) -> ProviderCreate:
    return ProviderCreate(**provider_payload(**overrides))


class TestSubmission:
    @pytest.mark.asyncio
    async def test_without_image_is_auto_approved(self, storage, notifier, outbox):
        await create_user(storage, "admin", is_admin=True)
        user = await create_user(storage, "pat")
        workflow = ProviderApprovalWorkflow(storage, notifier)

        provider = await workflow.submit(user, application())

        assert provider.approval_status == "approved"
        assert provider.is_verified is True
        assert provider.reviewed_by is None
        assert provider.reviewed_at is not None
        assert provider.admin_notes == AUTO_APPROVAL_NOTE
        assert (await storage.get_user(user.id)).is_service_provider is True
        # Admins are only alerted when there is something to review
        assert outbox.to("admin@example.com") == []

    @pytest.mark.asyncio
    async def test_with_image_waits_and_alerts_every_admin(self, storage, notifier, outbox):
        await create_user(storage, "admin1", is_admin=True)
        await create_user(storage, "admin2", is_admin=True)
        user = await create_user(storage, "pat")
        workflow = ProviderApprovalWorkflow(storage, notifier)

        provider = await workflow.submit(user, application(idVerificationImage=ID_IMAGE))

        assert provider.approval_status == "pending"
        assert provider.is_verified is False
        assert provider.reviewed_at is None
        for admin in ("admin1@example.com", "admin2@example.com"):
            alerts = outbox.to(admin)
            assert len(alerts) == 1
            assert alerts[0]["subject"] == "New Service Provider Application - Action Required"
            assert "pat@example.com" in alerts[0]["text"]

    @pytest.mark.asyncio
    async def test_second_profile_rejected(self, storage, notifier):
        user = await create_user(storage, "pat")
        workflow = ProviderApprovalWorkflow(storage, notifier)
        await workflow.submit(user, application())

        with pytest.raises(ValidationError):
            await workflow.submit(user, application())

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, storage, notifier):
        user = await create_user(storage, "pat")
        workflow = ProviderApprovalWorkflow(storage, notifier)

        with pytest.raises(ValidationError) as exc_info:
            await workflow.submit(user, application(category_id=404))
        assert exc_info.value.field == "categoryId"
        assert await storage.get_provider_by_user_id(user.id) is None


class TestDecisions:
    async def _pending(self, storage, notifier):
        admin = await create_user(storage, "admin", is_admin=True)
        user = await create_user(storage, "pat")
        workflow = ProviderApprovalWorkflow(storage, notifier)
        provider = await workflow.submit(user, application(idVerificationImage=ID_IMAGE))
        return workflow, admin, provider

    @pytest.mark.asyncio
    async def test_approve_stamps_review_and_emails_once(self, storage, notifier, outbox):
        workflow, admin, provider = await self._pending(storage, notifier)

        approved = await workflow.approve(provider.id, admin, "Looks good")

        assert approved.approval_status == "approved"
        assert approved.is_verified is True
        assert approved.reviewed_by == admin.id
        assert approved.reviewed_at is not None
        assert approved.admin_notes == "Looks good"

        outcome = outbox.to("pat@example.com")
        assert len(outcome) == 1
        assert outcome[0]["subject"] == "Your Service Provider Application Has Been Approved!"

    @pytest.mark.asyncio
    async def test_reject_requires_notes(self, storage, notifier):
        workflow, admin, provider = await self._pending(storage, notifier)

        with pytest.raises(ValidationError):
            await workflow.reject(provider.id, admin, "   ")
        assert (await storage.get_provider(provider.id)).approval_status == "pending"

    @pytest.mark.asyncio
    async def test_reject_keeps_profile_unverified(self, storage, notifier, outbox):
        workflow, admin, provider = await self._pending(storage, notifier)

        rejected = await workflow.reject(provider.id, admin, "ID photo is unreadable")

        assert rejected.approval_status == "rejected"
        assert rejected.is_verified is False
        assert rejected.reviewed_by == admin.id
        outcome = outbox.to("pat@example.com")
        assert len(outcome) == 1
        assert "ID photo is unreadable" in outcome[0]["text"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first", ["approve", "reject"])
    async def test_decisions_are_terminal(self, storage, notifier, outbox, first):
        workflow, admin, provider = await self._pending(storage, notifier)
        await getattr(workflow, first)(provider.id, admin, "notes")

        with pytest.raises(ConflictError):
            await workflow.approve(provider.id, admin)
        with pytest.raises(ConflictError):
            await workflow.reject(provider.id, admin, "changed my mind")

        # Only the first decision produced an email
        assert len(outbox.to("pat@example.com")) == 1

    @pytest.mark.asyncio
    async def test_auto_approved_profile_cannot_be_rejected(self, storage, notifier):
        admin = await create_user(storage, "admin", is_admin=True)
        user = await create_user(storage, "pat")
        workflow = ProviderApprovalWorkflow(storage, notifier)
        provider = await workflow.submit(user, application())

        with pytest.raises(ConflictError):
            await workflow.reject(provider.id, admin, "too late")

    @pytest.mark.asyncio
    async def test_non_admin_cannot_decide(self, storage, notifier):
        workflow, _, provider = await self._pending(storage, notifier)
        someone = await create_user(storage, "mallory")

        with pytest.raises(PermissionDeniedError):
            await workflow.approve(provider.id, someone)

    @pytest.mark.asyncio
    async def test_unknown_provider(self, storage, notifier):
        workflow, admin, _ = await self._pending(storage, notifier)

        with pytest.raises(NotFoundError):
            await workflow.approve(999, admin)

    @pytest.mark.asyncio
    async def test_failed_email_does_not_fail_decision(self, storage, notifier, outbox):
        workflow, admin, provider = await self._pending(storage, notifier)

        async def broken_send(**kwargs):
            raise ConnectionRefusedError("smtp down")

        outbox.send = broken_send
        approved = await workflow.approve(provider.id, admin)
        assert approved.approval_status == "approved"


class TestAdminRoutes:
    @pytest.mark.asyncio
    async def test_queue_requires_admin(self, client, storage):
        assert (await client.get("/api/admin/pending-providers")).status_code == 401

        await create_user(storage, "pat")
        await login(client, "pat")
        response = await client.get("/api/admin/pending-providers")
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_full_review_flow(self, client, make_client, storage):
        await create_user(storage, "admin", is_admin=True)
        await create_user(storage, "pat")

        applicant = make_client()
        await login(applicant, "pat")
        created = await applicant.post(
            "/api/providers", json=provider_payload(idVerificationImage=ID_IMAGE)
        )
        assert created.status_code == 201
        provider_id = created.json()["id"]
        assert created.json()["approvalStatus"] == "pending"

        # Not public while pending
        assert (await client.get(f"/api/providers/{provider_id}")).status_code == 404
        assert (await client.get("/api/providers")).json() == []

        await login(client, "admin")
        queue = (await client.get("/api/admin/pending-providers")).json()
        assert [p["id"] for p in queue] == [provider_id]
        assert queue[0]["user"]["email"] == "pat@example.com"
        assert queue[0]["category"]["id"] == 1

        missing_notes = await client.post(f"/api/admin/providers/{provider_id}/reject", json={})
        assert missing_notes.status_code == 400
        assert missing_notes.json()["details"]["field"] == "adminNotes"

        approved = await client.post(f"/api/admin/providers/{provider_id}/approve")
        assert approved.status_code == 200
        assert approved.json()["approvalStatus"] == "approved"

        again = await client.post(f"/api/admin/providers/{provider_id}/approve")
        assert again.status_code == 409
        assert again.json()["error"] == "conflict"

        assert (await client.get("/api/admin/pending-providers")).json() == []
        listed = await client.get("/api/providers")
        assert [p["id"] for p in listed.json()] == [provider_id]

    @pytest.mark.asyncio
    async def test_rejected_provider_stays_hidden(self, client, make_client, storage):
        await create_user(storage, "admin", is_admin=True)
        await create_user(storage, "pat")

        applicant = make_client()
        await login(applicant, "pat")
        created = await applicant.post(
            "/api/providers", json=provider_payload(idVerificationImage=ID_IMAGE)
        )
        provider_id = created.json()["id"]

        await login(client, "admin")
        rejected = await client.post(
            f"/api/admin/providers/{provider_id}/reject",
            json={"adminNotes": "Could not verify identity"},
        )
        assert rejected.status_code == 200
        assert rejected.json()["adminNotes"] == "Could not verify identity"

        assert (await client.get(f"/api/providers/{provider_id}")).status_code == 404
        own = await applicant.get("/api/user/provider")
        assert own.json()["approvalStatus"] == "rejected"

        # A rejected applicant cannot open a second application
        retry = await applicant.post("/api/providers", json=provider_payload())
        assert retry.status_code == 400

    @pytest.mark.asyncio
    async def test_minimal_application_uses_defaults(self, client, storage):
        await create_user(storage, "pat")
        await login(client, "pat")

        created = await client.post("/api/providers", json={"categoryId": 1, "hourlyRate": 20})

        assert created.status_code == 201
        body = created.json()
        assert body["bio"] == ""
        assert body["yearsOfExperience"] == 0
        assert body["availability"] == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"yearsOfExperience": 100}, {"availability": "x" * 300}, {"hourlyRate": 0.5}],
    )
    async def test_application_bounds(self, client, storage, overrides):
        await create_user(storage, "pat")
        await login(client, "pat")

        response = await client.post("/api/providers", json=provider_payload(**overrides))
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
