"""
FindMyHelper Backend — Infrastructure Tests
=============================================

What:  Email delivery, sessions, middleware, health check and
       configuration checks.
How:   smtplib is patched; middleware is exercised through the app.

What we test:
    ✅ SMTP backend sends multipart mail, with STARTTLS and login
    ✅ Notifier reports failures as False instead of raising
    ✅ Expired sessions are rejected and deleted
    ✅ Auth rate limit returns 429 with Retry-After, other routes untouched
    ✅ X-Request-ID is echoed or generated; errors carry request_id
    ✅ /health reports backend and status
    ✅ Production refuses default secrets and memory storage
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import create_user, login
from findmyhelper.config import Settings
from findmyhelper.database import utcnow
from findmyhelper.main import create_app
from findmyhelper.models import User
from findmyhelper.services.notifications import (
    ConsoleEmailBackend,
    Notifier,
    SmtpEmailBackend,
    build_email_backend,
)
from findmyhelper.services.sessions import SessionManager


class TestEmail:
    @pytest.mark.asyncio
    async def test_smtp_backend_sends_multipart(self, test_settings):
        config = test_settings.model_copy(
            update={
                "email_backend": "smtp",
                "smtp_host": "smtp.example.com",
                "smtp_username": "mailer",
                "smtp_password": "pw",
            }
        )
        backend = build_email_backend(config)
        assert isinstance(backend, SmtpEmailBackend)

        with patch("findmyhelper.services.notifications.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value
            await backend.send("to@example.com", "Hello", "<p>Hi</p>", "Hi")

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=10)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "pw")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "to@example.com"
        assert message["Subject"] == "Hello"
        assert message.is_multipart()
        server.quit.assert_called_once()

    def test_console_is_default(self, test_settings):
        assert isinstance(build_email_backend(test_settings), ConsoleEmailBackend)

    @pytest.mark.asyncio
    async def test_failed_delivery_returns_false(self, outbox):
        async def broken_send(**kwargs):
            raise OSError("connection refused")

        outbox.send = broken_send
        notifier = Notifier(outbox, frontend_url="http://frontend.test")
        user = User(username="u", email="u@example.com", first_name="U", last_name="V")

        assert await notifier.send_verification_email(user, "abc") is False

    @pytest.mark.asyncio
    async def test_html_is_escaped(self, outbox):
        notifier = Notifier(outbox, frontend_url="http://frontend.test/")
        user = User(
            username="u", email="u@example.com", first_name="<b>Eve</b>", last_name="V"
        )
        assert await notifier.send_verification_email(user, "abc") is True

        message = outbox.sent[0]
        assert "&lt;b&gt;Eve&lt;/b&gt;" in message["html"]
        assert "http://frontend.test/verify-email?token=abc" in message["text"]


class TestSessions:
    @pytest.mark.asyncio
    async def test_expired_session_is_rejected_and_deleted(self, client, storage):
        await create_user(storage, "cathy")
        await login(client, "cathy")
        assert (await client.get("/api/user")).status_code == 200

        for session in list(storage._sessions.values()):
            session.expires_at = utcnow() - timedelta(seconds=1)

        assert (await client.get("/api/user")).status_code == 401
        assert storage._sessions == {}

    @pytest.mark.asyncio
    async def test_purge_expired(self, storage, test_settings):
        user = await create_user(storage, "cathy")
        manager = SessionManager(storage, test_settings)

        await manager.start(MagicMock(), user)
        for session in storage._sessions.values():
            session.expires_at = utcnow() - timedelta(minutes=5)

        assert await manager.purge_expired() == 1

    @pytest.mark.asyncio
    async def test_cookie_flags(self, storage, test_settings):
        user = await create_user(storage, "cathy")
        response = MagicMock()

        await SessionManager(storage, test_settings).start(response, user)

        kwargs = response.set_cookie.call_args.kwargs
        assert kwargs["key"] == test_settings.session_cookie_name
        assert kwargs["httponly"] is True
        assert kwargs["samesite"] == "lax"
        assert kwargs["max_age"] == test_settings.session_max_age


class TestMiddleware:
    @pytest.mark.asyncio
    async def test_rate_limit_on_login(self, storage, notifier, upload_service, token_verifier, test_settings):
        config = test_settings.model_copy(update={"auth_rate_limit_requests": 3})
        app = create_app(
            storage=storage,
            notifier=notifier,
            upload_service=upload_service,
            token_verifier=token_verifier,
            config=config,
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            for _ in range(3):
                response = await c.post("/api/login", json={"username": "x", "password": "y"})
                assert response.status_code == 401

            limited = await c.post("/api/login", json={"username": "x", "password": "y"})
            assert limited.status_code == 429
            assert limited.json()["error"] == "rate_limit_exceeded"
            assert int(limited.headers["Retry-After"]) > 0
            assert limited.json()["request_id"] == limited.headers["X-Request-ID"]

            traced = await c.post(
                "/api/login",
                json={"username": "x", "password": "y"},
                headers={"X-Request-ID": "trace-429"},
            )
            assert traced.status_code == 429
            assert traced.json()["request_id"] == "trace-429"

            # Other routes and other methods are not limited
            assert (await c.get("/api/categories")).status_code == 200
            assert (await c.get("/api/login")).status_code == 405

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"

    @pytest.mark.asyncio
    async def test_error_body_carries_request_id(self, client):
        response = await client.get("/api/categories/999")
        body = response.json()
        assert body["error"] == "not_found"
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert len(body["request_id"]) == 8


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["storageBackend"] == "memory"
        assert body["storage"] == "connected"

    @pytest.mark.asyncio
    async def test_degraded_after_fallback(self, storage, notifier, upload_service, token_verifier, test_settings):
        config = test_settings.model_copy(update={"storage_backend": "auto"})
        app = create_app(storage, notifier, upload_service, token_verifier, config)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            assert (await c.get("/health")).json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_unhealthy_when_storage_down(self, client, storage):
        async def down():
            return False

        storage.ping = down
        response = await client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestProductionConfig:
    def test_defaults_rejected_in_production(self):
        config = Settings(_env_file=None, environment="production", storage_backend="memory")
        with pytest.raises(ValueError) as exc_info:
            config.validate_required_for_production()
        message = str(exc_info.value)
        assert "SESSION_SECRET" in message
        assert "STORAGE_BACKEND=memory" in message
        assert "SESSION_COOKIE_SECURE" in message

    def test_valid_production_config(self):
        config = Settings(
            _env_file=None,
            environment="production",
            storage_backend="database",
            session_secret="x" * 48,
            session_cookie_secure=True,
        )
        config.validate_required_for_production()

    def test_development_skips_checks(self):
        Settings(_env_file=None, environment="development").validate_required_for_production()

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, log_level="LOUD")

    def test_cors_origins_list(self):
        config = Settings(_env_file=None, cors_origins="https://a.com, https://b.com,")
        assert config.cors_origins_list == ["https://a.com", "https://b.com"]
