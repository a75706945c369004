"""
FindMyHelper Backend — Identity Service
=========================================

What:  Local accounts (register, password login, email verification),
       federated login by identity token, and profile edits.
How:   Passwords are bcrypt-hashed. Verification tokens are 32 random
       bytes, hex encoded, stored on the user until consumed.
Who:   routes/auth.py and routes/users.py.

Two authentication paths:
    local      username/email + password. Blocked with 403 until the
               verification link has been followed.
    federated  ID token from the identity provider, verified server-side.
               The local user is found by provider uid, linked by verified
               email, or created on first login already verified.

Admin status lives in User.is_admin. Two things set the flag: a federated
token carrying the custom claim `admin: true`, and a verified account whose
email is listed in ADMIN_EMAILS (applied on login, on email verification
and by promote_configured_admins at startup).
"""

import logging
import re
import secrets
from typing import FrozenSet, Optional, Tuple

import bcrypt
from pydantic import ValidationError as PayloadValidationError

from findmyhelper.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailNotVerifiedError,
    FindMyHelperError,
    ValidationError,
)
from findmyhelper.models import User
from findmyhelper.schemas.auth import RegisterRequest
from findmyhelper.schemas.user import UserUpdate
from findmyhelper.services.approval import ProviderApprovalWorkflow
from findmyhelper.services.firebase import IdentityTokenVerifier
from findmyhelper.services.notifications import Notifier
from findmyhelper.storage.base import Storage

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


# ── Password & Token Helpers ──────────────────────────────────────────────

def hash_password(password: str) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
            field="password",
        )
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long password
        return False


def generate_verification_token() -> str:
    return secrets.token_hex(32)


def _first_error(exc: PayloadValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"])
    return f"{field}: {error['msg']}" if field else error["msg"]


class IdentityService:
    def __init__(
        self,
        storage: Storage,
        notifier: Notifier,
        workflow: ProviderApprovalWorkflow,
        token_verifier: Optional[IdentityTokenVerifier] = None,
        admin_emails: FrozenSet[str] = frozenset(),
    ):
        self.storage = storage
        self.notifier = notifier
        self.workflow = workflow
        self.token_verifier = token_verifier
        self.admin_emails = admin_emails

    # ── Local Accounts ────────────────────────────────────────────────────

    async def register(self, data: RegisterRequest) -> Tuple[User, Optional[str]]:
        """
        Create a local account and send its verification email.

        For providers the application is submitted right after the user row
        exists. If that part fails the account is kept and the problem is
        returned as a warning string instead of an error.

        Returns:
            (user, warning) where warning is None on full success.

        Raises:
            ValidationError: email or username already taken.
        """
        email = data.email.lower()
        if await self.storage.get_user_by_email(email):
            raise ValidationError("Email already exists", field="email")
        if await self.storage.get_user_by_username(data.username):
            raise ValidationError("Username already exists", field="username")

        token = generate_verification_token()
        user = await self.storage.create_user(
            User(
                username=data.username,
                email=email,
                password=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                phone_number=data.phone_number,
                email_verification_token=token,
            )
        )
        logger.info("Registered user %s (%s)", user.id, user.username)

        await self.notifier.send_verification_email(user, token)

        warning = None
        if data.is_service_provider:
            try:
                await self.workflow.submit(user, data.provider_application())
            except (FindMyHelperError, PayloadValidationError) as e:
                reason = e.message if isinstance(e, FindMyHelperError) else _first_error(e)
                logger.warning(
                    "User %s registered but provider profile failed: %s", user.id, reason
                )
                warning = f"Account created, but the provider profile could not be saved: {reason}"

        return await self.storage.get_user(user.id) or user, warning

    async def authenticate(self, identifier: str, password: str) -> User:
        """
        Check local credentials. `identifier` is a username or an email.

        Raises:
            AuthenticationError: unknown user or wrong password.
            EmailNotVerifiedError: credentials are right but the email has
            not been verified yet.
        """
        user = await self.storage.get_user_by_username(identifier)
        if user is None and "@" in identifier:
            user = await self.storage.get_user_by_email(identifier.lower())

        if user is None or not user.password or not verify_password(password, user.password):
            raise AuthenticationError("Invalid username or password")

        if not user.is_email_verified:
            raise EmailNotVerifiedError(context={"user_id": user.id})

        return await self._apply_configured_admin(user)

    async def verify_email(self, token: Optional[str]) -> User:
        if not token:
            raise ValidationError("Verification token is required", field="token")

        user = await self.storage.get_user_by_verification_token(token)
        if user is None:
            raise ValidationError("Invalid or expired verification token", field="token")

        updated = await self.storage.update_user(
            user.id, {"is_email_verified": True, "email_verification_token": None}
        )
        logger.info("Email verified for user %s", user.id)
        return await self._apply_configured_admin(updated or user)

    # ── Federated Login ───────────────────────────────────────────────────

    async def authenticate_federated(self, id_token: str) -> User:
        """
        Resolve the local user for a verified identity token.

        Lookup order: provider uid, then email (only when the provider says
        the email is verified), then lazy creation from the token claims.
        """
        if self.token_verifier is None:
            raise AuthenticationError("Federated login is not configured on this server")

        claims = await self.token_verifier.verify(id_token)
        uid = str(claims["sub"])
        email = str(claims.get("email") or "").lower()
        email_verified = bool(claims.get("email_verified"))

        user = await self.storage.get_user_by_firebase_uid(uid)

        if user is None and email:
            existing = await self.storage.get_user_by_email(email)
            if existing is not None:
                if not email_verified:
                    raise ConflictError(
                        "An account with this email already exists. Sign in with your password.",
                        context={"email": email},
                    )
                user = await self.storage.update_user(
                    existing.id, {"firebase_uid": uid, "is_email_verified": True}
                )
                logger.info("Linked federated identity to existing user %s", existing.id)

        if user is None:
            if not email:
                raise AuthenticationError("Identity token does not include an email address")
            first_name, _, last_name = str(claims.get("name") or "").partition(" ")
            username = await self._unique_username(email.split("@", 1)[0])
            user = await self.storage.create_user(
                User(
                    username=username,
                    email=email,
                    first_name=first_name or username,
                    last_name=last_name,
                    profile_picture=claims.get("picture"),
                    firebase_uid=uid,
                    is_email_verified=True,
                )
            )
            logger.info("Created user %s from federated login", user.id)

        if claims.get("admin") is True and not user.is_admin:
            user = await self.storage.update_user(user.id, {"is_admin": True}) or user
            logger.info("Granted admin role to user %s from token claim", user.id)

        return await self._apply_configured_admin(user)

    # ── Admin Bootstrap ───────────────────────────────────────────────────

    async def _apply_configured_admin(self, user: User) -> User:
        if user.is_admin or not user.is_email_verified:
            return user
        if user.email.lower() not in self.admin_emails:
            return user
        logger.info("Granted admin role to user %s from ADMIN_EMAILS", user.id)
        return await self.storage.update_user(user.id, {"is_admin": True}) or user

    async def promote_configured_admins(self) -> int:
        """Flag every existing verified account listed in ADMIN_EMAILS. Returns the count."""
        promoted = 0
        for email in sorted(self.admin_emails):
            user = await self.storage.get_user_by_email(email)
            if user is not None and not user.is_admin and user.is_email_verified:
                await self._apply_configured_admin(user)
                promoted += 1
        return promoted

    async def _unique_username(self, seed: str) -> str:
        base = re.sub(r"[^A-Za-z0-9_.-]", "", seed)[:40]
        if len(base) < 3:
            base = f"user{base}"
        candidate, suffix = base, 1
        while await self.storage.get_user_by_username(candidate) is not None:
            candidate = f"{base}{suffix}"
            suffix += 1
        return candidate

    # ── Profile ───────────────────────────────────────────────────────────

    async def update_profile(self, user: User, data: UserUpdate) -> User:
        email = data.email.lower()
        if email != user.email:
            taken = await self.storage.get_user_by_email(email)
            if taken is not None and taken.id != user.id:
                raise ValidationError("Email already in use", field="email")

        changes = data.model_dump(exclude_unset=True)
        changes["email"] = email
        updated = await self.storage.update_user(user.id, changes)
        if updated is None:
            raise AuthenticationError("Your account no longer exists")
        return updated

    async def set_profile_picture(self, user: User, url: str) -> User:
        return await self.storage.update_user(user.id, {"profile_picture": url}) or user
