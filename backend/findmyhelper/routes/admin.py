"""
FindMyHelper Backend — Admin Routes
=====================================

What:  The provider approval queue and the approve/reject decisions.
Who:   Users with is_admin. Everyone else gets 403 (401 without a session).

Approve takes optional notes; reject requires them. Deciding on a
provider that is no longer pending returns 409.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from findmyhelper.dependencies import get_approval_workflow, require_admin
from findmyhelper.models import ServiceProvider, User
from findmyhelper.schemas.common import ErrorResponse
from findmyhelper.schemas.provider import ApprovalDecision, ProviderListItem, ProviderResponse
from findmyhelper.services.approval import ProviderApprovalWorkflow

router = APIRouter(prefix="/api/admin", tags=["Admin"])

_decision_errors = {
    401: {"description": "Not logged in", "model": ErrorResponse},
    403: {"description": "Admin access required", "model": ErrorResponse},
    404: {"description": "Provider not found", "model": ErrorResponse},
    409: {"description": "Provider already reviewed", "model": ErrorResponse},
}


@router.get(
    "/pending-providers",
    response_model=List[ProviderListItem],
    responses={
        401: {"description": "Not logged in", "model": ErrorResponse},
        403: {"description": "Admin access required", "model": ErrorResponse},
    },
    summary="List provider applications awaiting review",
)
async def list_pending_providers(
    admin: User = Depends(require_admin),
    workflow: ProviderApprovalWorkflow = Depends(get_approval_workflow),
) -> List[ProviderListItem]:
    return await workflow.list_pending()


@router.post(
    "/providers/{provider_id}/approve",
    response_model=ProviderResponse,
    responses=_decision_errors,
    summary="Approve a provider application",
)
async def approve_provider(
    provider_id: int,
    decision: Optional[ApprovalDecision] = None,
    admin: User = Depends(require_admin),
    workflow: ProviderApprovalWorkflow = Depends(get_approval_workflow),
) -> ServiceProvider:
    notes = decision.admin_notes if decision else None
    return await workflow.approve(provider_id, admin, notes)


@router.post(
    "/providers/{provider_id}/reject",
    response_model=ProviderResponse,
    responses={
        **_decision_errors,
        400: {"description": "Admin notes are required", "model": ErrorResponse},
    },
    summary="Reject a provider application",
)
async def reject_provider(
    provider_id: int,
    decision: ApprovalDecision,
    admin: User = Depends(require_admin),
    workflow: ProviderApprovalWorkflow = Depends(get_approval_workflow),
) -> ServiceProvider:
    return await workflow.reject(provider_id, admin, decision.admin_notes)
