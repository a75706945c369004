"""
FindMyHelper Backend — FastAPI Dependencies
=============================================

What:  Resolves the storage backend, services and the session user for
       route handlers via Depends().
How:   Long-lived collaborators (storage, notifier, upload service, token
       verifier, settings) live on app.state, set by create_app() and the
       lifespan. Services are cheap wrappers built per request around them.

Auth dependencies:
    get_optional_user   User or None, never raises
    get_current_user    401 when there is no valid session
    require_admin       403 unless user.is_admin
"""

from typing import Optional

from fastapi import Depends, Request

from findmyhelper.config import Settings
from findmyhelper.exceptions import AuthenticationError, PermissionDeniedError
from findmyhelper.models import User
from findmyhelper.services.approval import ProviderApprovalWorkflow
from findmyhelper.services.identity import IdentityService
from findmyhelper.services.marketplace import MarketplaceService
from findmyhelper.services.notifications import Notifier
from findmyhelper.services.object_storage import ImageUploadService
from findmyhelper.services.providers import ProviderDirectory
from findmyhelper.services.sessions import SessionManager
from findmyhelper.storage.base import Storage


# ── Shared Collaborators ──────────────────────────────────────────────────

def get_config(request: Request) -> Settings:
    return request.app.state.config


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_upload_service(request: Request) -> ImageUploadService:
    return request.app.state.uploads


def get_session_manager(
    storage: Storage = Depends(get_storage),
    config: Settings = Depends(get_config),
) -> SessionManager:
    return SessionManager(storage, config)


# ── Authentication ────────────────────────────────────────────────────────

async def get_optional_user(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
) -> Optional[User]:
    user = await sessions.current_user(request)
    if user is not None:
        # Picked up by the access log middleware
        request.state.user_id = user.id
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise AuthenticationError("You must be logged in")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return user


# ── Services ──────────────────────────────────────────────────────────────

def get_approval_workflow(
    storage: Storage = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
) -> ProviderApprovalWorkflow:
    return ProviderApprovalWorkflow(storage, notifier)


def get_identity_service(
    request: Request,
    config: Settings = Depends(get_config),
    storage: Storage = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
    workflow: ProviderApprovalWorkflow = Depends(get_approval_workflow),
) -> IdentityService:
    return IdentityService(
        storage,
        notifier,
        workflow,
        token_verifier=request.app.state.token_verifier,
        admin_emails=config.admin_emails_set,
    )


def get_provider_directory(storage: Storage = Depends(get_storage)) -> ProviderDirectory:
    return ProviderDirectory(storage)


def get_marketplace(storage: Storage = Depends(get_storage)) -> MarketplaceService:
    return MarketplaceService(storage)
