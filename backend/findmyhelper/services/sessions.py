"""
FindMyHelper Backend — Session Layer
======================================

What:  Cookie-based login sessions backed by the storage layer.
How:   A random session id is stored as a UserSession row with an expiry.
       The browser receives the id signed with itsdangerous
       (URLSafeTimedSerializer), so a forged or tampered cookie is
       rejected before any storage lookup.
Who:   Login routes (start/end) and the get_current_user dependency.

Expiry is enforced twice: the signature carries a timestamp checked
against SESSION_MAX_AGE, and the row's expires_at is checked on load.
Expired rows found on load are deleted; the rest are purged at startup.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import Request, Response
from itsdangerous import BadSignature, URLSafeTimedSerializer

from findmyhelper.config import Settings, settings as default_settings
from findmyhelper.database import ensure_aware, utcnow
from findmyhelper.models import User, UserSession
from findmyhelper.storage.base import Storage

logger = logging.getLogger(__name__)

SESSION_SALT = "findmyhelper-session"


class SessionManager:
    def __init__(self, storage: Storage, config: Optional[Settings] = None):
        self.storage = storage
        self.config = config or default_settings
        self.cookie_name = self.config.session_cookie_name
        self.max_age = self.config.session_max_age
        self._serializer = URLSafeTimedSerializer(self.config.session_secret, salt=SESSION_SALT)

    def _session_id(self, request: Request) -> Optional[str]:
        cookie = request.cookies.get(self.cookie_name)
        if not cookie:
            return None
        try:
            return self._serializer.loads(cookie, max_age=self.max_age)
        except BadSignature:
            # Also covers SignatureExpired
            logger.debug("Ignoring invalid or expired session cookie")
            return None

    async def start(self, response: Response, user: User) -> UserSession:
        """Persist a new session for `user` and set its cookie on `response`."""
        session = await self.storage.create_session(
            UserSession(
                id=secrets.token_urlsafe(32),
                user_id=user.id,
                expires_at=utcnow() + timedelta(seconds=self.max_age),
            )
        )
        response.set_cookie(
            key=self.cookie_name,
            value=self._serializer.dumps(session.id),
            max_age=self.max_age,
            httponly=True,
            samesite="lax",
            secure=self.config.session_cookie_secure,
            path="/",
        )
        logger.info("Session started for user %s", user.id)
        return session

    async def current_user(self, request: Request) -> Optional[User]:
        session_id = self._session_id(request)
        if session_id is None:
            return None

        session = await self.storage.get_session(session_id)
        if session is None:
            return None
        if ensure_aware(session.expires_at) <= utcnow():
            await self.storage.delete_session(session_id)
            return None

        return await self.storage.get_user(session.user_id)

    async def end(self, request: Request, response: Response) -> None:
        session_id = self._session_id(request)
        if session_id is not None:
            await self.storage.delete_session(session_id)
        response.delete_cookie(self.cookie_name, path="/")

    async def purge_expired(self) -> int:
        purged = await self.storage.purge_expired_sessions(utcnow())
        if purged:
            logger.info("Purged %d expired sessions", purged)
        return purged
