"""
FindMyHelper Backend — Federated Identity Token Verification
==============================================================

What:  Verifies Firebase Authentication ID tokens sent by the web and
       mobile clients after they sign in with the identity provider.
How:   ID tokens are RS256 JWTs. The public signing keys are published as
       a JWKS document; we fetch it with httpx, cache it, and let PyJWT
       check signature, audience (project id), issuer and expiry.
Who:   IdentityService.authenticate_federated (POST /api/auth/firebase).

Key rotation:
    Keys are cached for `cache_ttl` seconds. A token signed with an
    unknown `kid` forces one refresh before it is rejected.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import httpx
import jwt

from findmyhelper.config import Settings, settings as default_settings
from findmyhelper.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ISSUER_PREFIX = "https://securetoken.google.com/"


class IdentityTokenVerifier(ABC):
    """Turns a client-supplied identity token into verified claims."""

    @abstractmethod
    async def verify(self, token: str) -> Mapping[str, Any]:
        """
        Returns:
            Verified claims. `sub` is the provider's stable user id; `email`,
            `email_verified`, `name` and `picture` are used when present.

        Raises:
            AuthenticationError: the token is malformed, expired, or not
            signed by the identity provider for this project.
        """


class FirebaseTokenVerifier(IdentityTokenVerifier):
    def __init__(
        self,
        project_id: str,
        jwks_url: str,
        cache_ttl: int = 3600,
        timeout: float = 10.0,
    ):
        self.project_id = project_id
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self._keys: Dict[str, jwt.PyJWK] = {}
        self._fetched_at: float = 0.0

    async def _fetch_jwks(self) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.jwks_url)
            response.raise_for_status()
            return response.json()

    async def _signing_key(self, kid: str) -> Optional[jwt.PyJWK]:
        stale = time.monotonic() - self._fetched_at > self.cache_ttl
        if stale or kid not in self._keys:
            try:
                jwks = await self._fetch_jwks()
            except httpx.HTTPError as e:
                logger.error("Could not fetch identity provider keys: %s", str(e))
                raise AuthenticationError(
                    "Could not verify identity token. Please try again later.",
                    context={"jwks_url": self.jwks_url, "error": str(e)},
                ) from e
            key_set = jwt.PyJWKSet.from_dict(jwks)
            self._keys = {key.key_id: key for key in key_set.keys if key.key_id}
            self._fetched_at = time.monotonic()
            logger.debug("Loaded %d identity provider signing keys", len(self._keys))
        return self._keys.get(kid)

    async def verify(self, token: str) -> Mapping[str, Any]:
        if not self.project_id:
            raise AuthenticationError("Federated login is not configured on this server")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise AuthenticationError("Invalid identity token") from e

        kid = header.get("kid")
        key = await self._signing_key(kid) if kid else None
        if key is None:
            raise AuthenticationError("Identity token was signed with an unknown key")

        try:
            claims = jwt.decode(
                token,
                key.key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=ISSUER_PREFIX + self.project_id,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Identity token has expired") from e
        except jwt.PyJWTError as e:
            logger.info("Rejected identity token: %s", str(e))
            raise AuthenticationError("Invalid identity token") from e

        if not claims.get("sub"):
            raise AuthenticationError("Identity token has no subject")
        return claims


def build_token_verifier(config: Optional[Settings] = None) -> FirebaseTokenVerifier:
    config = config or default_settings
    return FirebaseTokenVerifier(
        project_id=config.firebase_project_id,
        jwks_url=config.firebase_jwks_url,
    )
