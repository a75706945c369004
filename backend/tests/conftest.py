"""
FindMyHelper Backend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets a fresh app wired to MemoryStorage, a recording
       email backend, a temp-dir upload service and a fake identity token
       verifier. No network, SMTP server or database is needed.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── test_settings: Settings with memory storage and a relaxed rate limit
    ├── storage: initialized MemoryStorage (categories seeded)
    ├── outbox: RecordingEmailBackend collecting every sent email
    ├── notifier: Notifier delivering into the outbox
    ├── upload_service: ImageUploadService writing below tmp_path
    ├── token_verifier: FakeTokenVerifier with per-test token → claims map
    ├── app: create_app() with all of the above injected
    ├── client: HTTPX AsyncClient bound to the app
    └── make_client: factory for more clients (one cookie jar per user)
"""

import os
import tempfile
from typing import Any, Dict, List, Mapping

# Override settings for testing BEFORE any findmyhelper imports
os.environ["ENVIRONMENT"] = "test"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["EMAIL_BACKEND"] = "console"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="findmyhelper_test_")
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from findmyhelper.config import Settings
from findmyhelper.exceptions import AuthenticationError
from findmyhelper.main import create_app
from findmyhelper.models import User
from findmyhelper.services.firebase import IdentityTokenVerifier
from findmyhelper.services.identity import hash_password
from findmyhelper.services.notifications import EmailBackend, Notifier
from findmyhelper.services.object_storage import ImageUploadService, LocalObjectStorage
from findmyhelper.storage.memory import MemoryStorage

DEFAULT_PASSWORD = "correct-horse"

# Minimal JPEG: Start of Image (FFD8) + JFIF marker + End of Image (FFD9)
SAMPLE_JPEG = (
    b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    b"\xff\xd9"
)


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════

class RecordingEmailBackend(EmailBackend):
    """Keeps every message in memory instead of sending it."""

    def __init__(self):
        self.sent: List[Dict[str, str]] = []

    async def send(self, to: str, subject: str, html: str, text: str) -> None:
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})

    def to(self, address: str) -> List[Dict[str, str]]:
        return [m for m in self.sent if m["to"] == address]


class FakeTokenVerifier(IdentityTokenVerifier):
    """Accepts only the tokens registered in `tokens`."""

    def __init__(self):
        self.tokens: Dict[str, Dict[str, Any]] = {}

    async def verify(self, token: str) -> Mapping[str, Any]:
        if token not in self.tokens:
            raise AuthenticationError("Invalid identity token")
        return self.tokens[token]


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

async def create_user(
    storage: MemoryStorage,
    username: str,
    password: str = DEFAULT_PASSWORD,
    is_admin: bool = False,
    verified: bool = True,
) -> User:
    """Insert a local account directly, bypassing registration."""
    return await storage.create_user(
        User(
            username=username,
            email=f"{username}@example.com",
            password=hash_password(password),
            first_name=username.capitalize(),
            last_name="Tester",
            is_admin=is_admin,
            is_email_verified=verified,
        )
    )


async def login(client: AsyncClient, username: str, password: str = DEFAULT_PASSWORD):
    response = await client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response


def provider_payload(category_id: int = 1, **overrides) -> Dict[str, Any]:
    payload = {
        "categoryId": category_id,
        "hourlyRate": 35.0,
        "bio": "Ten years of fixing things around the house.",
        "yearsOfExperience": 10,
        "availability": "Weekdays 9-5",
    }
    payload.update(overrides)
    return payload


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="test",
        storage_backend="memory",
        storage_root=str(tmp_path / "storage"),
        frontend_url="http://frontend.test",
        auth_rate_limit_requests=1000,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def storage():
    store = MemoryStorage()
    await store.initialize()
    return store


@pytest.fixture
def outbox():
    return RecordingEmailBackend()


@pytest.fixture
def notifier(outbox, test_settings):
    return Notifier(outbox, frontend_url=test_settings.frontend_url)


@pytest.fixture
def upload_service(tmp_path):
    return ImageUploadService(LocalObjectStorage(str(tmp_path / "uploads")), max_file_size=1024 * 1024)


@pytest.fixture
def token_verifier():
    return FakeTokenVerifier()


@pytest.fixture
def app(storage, notifier, upload_service, token_verifier, test_settings):
    return create_app(
        storage=storage,
        notifier=notifier,
        upload_service=upload_service,
        token_verifier=token_verifier,
        config=test_settings,
    )


@pytest_asyncio.fixture
async def client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    Uses ASGITransport to route requests directly to the app. The cookie
    jar keeps the session cookie between requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def make_client(app):
    """Factory for extra clients, so two users can be logged in at once."""
    clients: List[AsyncClient] = []

    def factory() -> AsyncClient:
        c = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(c)
        return c

    yield factory

    for c in clients:
        await c.aclose()
