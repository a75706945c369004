"""
FindMyHelper Backend — Authentication Routes
==============================================

What:  Local registration/login/logout, email verification and federated
       login. Successful logins set the signed session cookie.
Who:   Web and mobile clients. POST endpoints here are rate limited per IP.

Registration never logs the user in: local accounts must follow the
verification link first, and /api/login answers 403 until they do.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status

from findmyhelper.dependencies import get_identity_service, get_session_manager
from findmyhelper.exceptions import AuthenticationError
from findmyhelper.schemas.auth import LoginRequest, RegisterRequest, RegisterResponse
from findmyhelper.schemas.common import ErrorResponse, MessageResponse
from findmyhelper.schemas.user import UserResponse
from findmyhelper.services.identity import IdentityService
from findmyhelper.services.sessions import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])

REGISTRATION_MESSAGE = (
    "Registration successful. Please check your email to verify your account."
)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=RegisterResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Invalid input or email/username taken", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Register a client or provider account",
)
async def register(
    data: RegisterRequest,
    identity: IdentityService = Depends(get_identity_service),
) -> RegisterResponse:
    user, warning = await identity.register(data)
    return RegisterResponse(
        message=REGISTRATION_MESSAGE,
        user=UserResponse.model_validate(user),
        warning=warning,
    )


@router.post(
    "/login",
    response_model=UserResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        403: {"description": "Email not verified", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Log in with username or email and password",
)
async def login(
    data: LoginRequest,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
    sessions: SessionManager = Depends(get_session_manager),
) -> UserResponse:
    user = await identity.authenticate(data.username, data.password)
    await sessions.start(response, user)
    return UserResponse.model_validate(user)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="End the current session",
)
async def logout(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
) -> MessageResponse:
    await sessions.end(request, response)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/auth/firebase",
    response_model=UserResponse,
    responses={
        401: {"description": "Missing or invalid identity token", "model": ErrorResponse},
        409: {"description": "Email belongs to an unlinked local account", "model": ErrorResponse},
    },
    summary="Log in with a federated identity token",
)
async def firebase_login(
    response: Response,
    authorization: Optional[str] = Header(default=None),
    identity: IdentityService = Depends(get_identity_service),
    sessions: SessionManager = Depends(get_session_manager),
) -> UserResponse:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be 'Bearer <id token>'")

    user = await identity.authenticate_federated(token.strip())
    await sessions.start(response, user)
    return UserResponse.model_validate(user)


@router.get(
    "/verify-email",
    response_model=MessageResponse,
    responses={400: {"description": "Missing or invalid token", "model": ErrorResponse}},
    summary="Confirm an email address from the verification link",
)
async def verify_email(
    token: Optional[str] = Query(default=None),
    identity: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    await identity.verify_email(token)
    return MessageResponse(message="Email verified successfully. You can now log in.")
