"""
FindMyHelper Backend — Identity Token Verifier Tests
======================================================

What:  FirebaseTokenVerifier signature, audience, issuer and expiry checks.
How:   A throwaway RSA key signs tokens locally; _fetch_jwks is mocked to
       return its public half, so no network call is made.

What we test:
    ✅ A correctly signed token yields its claims
    ✅ Wrong audience, wrong issuer, expired token, unknown kid rejected
    ✅ Keys are cached; an unknown kid forces one refresh
    ✅ JWKS fetch failure is an authentication error, not a 500
"""

import json
import time
from unittest.mock import AsyncMock

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from findmyhelper.exceptions import AuthenticationError
from findmyhelper.services.firebase import FirebaseTokenVerifier

PROJECT = "findmyhelper-test"


@pytest.fixture(scope="module")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def jwks(signing_key):
    jwk = json.loads(RSAAlgorithm.to_jwk(signing_key.public_key()))
    jwk.update({"kid": "key-1", "alg": "RS256", "use": "sig"})
    return {"keys": [jwk]}


@pytest.fixture
def verifier(jwks):
    v = FirebaseTokenVerifier(project_id=PROJECT, jwks_url="https://keys.invalid/jwks")
    v._fetch_jwks = AsyncMock(return_value=jwks)
    return v


def make_token(signing_key, kid="key-1", **overrides):
    now = int(time.time())
    claims = {
        "iss": f"https://securetoken.google.com/{PROJECT}",
        "aud": PROJECT,
        "sub": "uid-123",
        "iat": now,
        "exp": now + 3600,
        "email": "user@example.com",
        "email_verified": True,
    }
    claims.update(overrides)
    return jwt.encode(claims, signing_key, algorithm="RS256", headers={"kid": kid})


class TestFirebaseTokenVerifier:
    @pytest.mark.asyncio
    async def test_valid_token(self, verifier, signing_key):
        claims = await verifier.verify(make_token(signing_key))
        assert claims["sub"] == "uid-123"
        assert claims["email"] == "user@example.com"

    @pytest.mark.asyncio
    async def test_wrong_audience(self, verifier, signing_key):
        with pytest.raises(AuthenticationError):
            await verifier.verify(make_token(signing_key, aud="someone-else"))

    @pytest.mark.asyncio
    async def test_wrong_issuer(self, verifier, signing_key):
        with pytest.raises(AuthenticationError):
            await verifier.verify(make_token(signing_key, iss="https://evil.example.com"))

    @pytest.mark.asyncio
    async def test_expired(self, verifier, signing_key):
        past = int(time.time()) - 7200
        with pytest.raises(AuthenticationError, match="expired"):
            await verifier.verify(make_token(signing_key, iat=past, exp=past + 60))

    @pytest.mark.asyncio
    async def test_signed_by_other_key(self, verifier):
        stranger = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(AuthenticationError):
            await verifier.verify(make_token(stranger))

    @pytest.mark.asyncio
    async def test_unknown_kid_refreshes_once(self, verifier, signing_key):
        await verifier.verify(make_token(signing_key))
        assert verifier._fetch_jwks.await_count == 1

        await verifier.verify(make_token(signing_key))
        assert verifier._fetch_jwks.await_count == 1

        with pytest.raises(AuthenticationError, match="unknown key"):
            await verifier.verify(make_token(signing_key, kid="rotated"))
        assert verifier._fetch_jwks.await_count == 2

    @pytest.mark.asyncio
    async def test_garbage_token(self, verifier):
        with pytest.raises(AuthenticationError):
            await verifier.verify("not.a.jwt")

    @pytest.mark.asyncio
    async def test_jwks_unreachable(self, signing_key):
        v = FirebaseTokenVerifier(project_id=PROJECT, jwks_url="https://keys.invalid/jwks")
        v._fetch_jwks = AsyncMock(side_effect=httpx.ConnectError("no route"))
        with pytest.raises(AuthenticationError, match="try again later"):
            await v.verify(make_token(signing_key))

    @pytest.mark.asyncio
    async def test_not_configured(self, signing_key):
        v = FirebaseTokenVerifier(project_id="", jwks_url="https://keys.invalid/jwks")
        with pytest.raises(AuthenticationError, match="not configured"):
            await v.verify(make_token(signing_key))
