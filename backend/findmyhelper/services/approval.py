"""
FindMyHelper Backend — Provider Approval Workflow
===================================================

What:  Owns every change to a provider's approval_status: submission,
       auto-approval, admin approval and admin rejection.
How:   The move out of `pending` is a compare-and-set through
       Storage.transition_provider, so two admins acting at once cannot
       both win. Email side effects run after the state change is stored.
Who:   POST /api/providers, registration of providers, /api/admin/*.

State machine:
    pending ──approve──▶ approved   (is_verified = True)
    pending ──reject───▶ rejected   (is_verified = False, notes required)

    Both end states are terminal. Acting on a non-pending provider is a
    ConflictError (409). A rejected provider cannot apply again.

Auto-approval:
    An application without an identity verification image skips the admin
    queue and is approved on submission with reviewed_by left empty.
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
from findmyhelper.models import ApprovalStatus, ServiceProvider, User
from findmyhelper.schemas.provider import ProviderCreate, ProviderListItem
from findmyhelper.services.notifications import Notifier
from findmyhelper.services.providers import build_provider_item
from findmyhelper.storage.base import Storage

logger = logging.getLogger(__name__)

AUTO_APPROVAL_NOTE = "Auto-approved: no identity verification image submitted"


class ProviderApprovalWorkflow:
    def __init__(self, storage: Storage, notifier: Notifier):
        self.storage = storage
        self.notifier = notifier

    # ── Submission ────────────────────────────────────────────────────────

    async def submit(self, user: User, data: ProviderCreate) -> ServiceProvider:
        """
        Create `user`'s provider profile in `pending`.

        Without an identity image the profile is approved immediately.
        With one, every admin is alerted and the profile waits in the queue.

        Raises:
            ValidationError: the user already has a profile, or the category
            does not exist.
        """
        if await self.storage.get_provider_by_user_id(user.id) is not None:
            raise ValidationError(
                "You already have a service provider profile",
                context={"user_id": user.id},
            )

        category = await self.storage.get_category(data.category_id)
        if category is None:
            raise ValidationError("Unknown service category", field="categoryId")

        provider = await self.storage.create_provider(
            ServiceProvider(
                user_id=user.id,
                category_id=data.category_id,
                hourly_rate=data.hourly_rate,
                bio=data.bio,
                years_of_experience=data.years_of_experience,
                availability=data.availability,
                id_verification_image=data.id_verification_image,
            )
        )
        user = await self.storage.update_user(user.id, {"is_service_provider": True}) or user
        logger.info("Provider application %s submitted by user %s", provider.id, user.id)

        if not data.id_verification_image:
            approved = await self.storage.transition_provider(
                provider.id,
                ApprovalStatus.PENDING.value,
                {
                    "approval_status": ApprovalStatus.APPROVED.value,
                    "is_verified": True,
                    "reviewed_at": utcnow(),
                    "reviewed_by": None,
                    "admin_notes": AUTO_APPROVAL_NOTE,
                },
            )
            logger.info("Provider %s auto-approved (no verification image)", provider.id)
            return approved or provider

        admins = await self.storage.list_admins()
        await self.notifier.send_provider_application_alert(admins, provider, user, category)
        return provider

    # ── Admin Decisions ───────────────────────────────────────────────────

    async def approve(
        self, provider_id: int, admin: User, notes: Optional[str] = None
    ) -> ServiceProvider:
        return await self._decide(provider_id, admin, ApprovalStatus.APPROVED, notes)

    async def reject(self, provider_id: int, admin: User, notes: Optional[str]) -> ServiceProvider:
        if not notes or not notes.strip():
            raise ValidationError(
                "Admin notes are required when rejecting an application",
                field="adminNotes",
            )
        return await self._decide(provider_id, admin, ApprovalStatus.REJECTED, notes)

    async def _decide(
        self,
        provider_id: int,
        admin: User,
        outcome: ApprovalStatus,
        notes: Optional[str],
    ) -> ServiceProvider:
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")

        provider = await self.storage.get_provider(provider_id)
        if provider is None:
            raise NotFoundError(resource="service provider", resource_id=provider_id)

        decided = None
        if provider.approval_status == ApprovalStatus.PENDING.value:
            decided = await self.storage.transition_provider(
                provider_id,
                ApprovalStatus.PENDING.value,
                {
                    "approval_status": outcome.value,
                    "is_verified": outcome is ApprovalStatus.APPROVED,
                    "admin_notes": notes,
                    "reviewed_at": utcnow(),
                    "reviewed_by": admin.id,
                },
            )
        if decided is None:
            current = await self.storage.get_provider(provider_id)
            status = current.approval_status if current else provider.approval_status
            raise ConflictError(
                f"Provider application has already been {status}",
                context={"provider_id": provider_id, "approval_status": status},
            )

        logger.info("Provider %s %s by admin %s", provider_id, outcome.value, admin.id)

        applicant = await self.storage.get_user(decided.user_id)
        if applicant is not None:
            await self.notifier.send_approval_outcome(decided, applicant)
        return decided

    # ── Queue ─────────────────────────────────────────────────────────────

    async def list_pending(self) -> List[ProviderListItem]:
        pending = await self.storage.list_providers(approval_status=ApprovalStatus.PENDING.value)
        return [await build_provider_item(self.storage, provider) for provider in pending]
