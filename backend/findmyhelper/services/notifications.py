"""
FindMyHelper Backend — Notification Dispatcher
================================================

What:  Renders and sends the transactional emails: verification link,
       new-application alert to admins, and approval/rejection outcome.
How:   Jinja2 templates in findmyhelper/templates/email render the HTML
       body. An EmailBackend delivers the message:
           SmtpEmailBackend     smtplib in a worker thread
           ConsoleEmailBackend  logs instead of sending (development)
Who:   Identity service (verification), approval workflow (alert, outcome).

Delivery is best-effort. Every public send_* method catches and logs any
failure and returns False; a failed email never fails the request that
triggered it. There is no retry or outbox.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from findmyhelper.config import Settings, settings as default_settings
from findmyhelper.models import ServiceCategory, ServiceProvider, User

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Delivery Backends
# ══════════════════════════════════════════════════════════════════════════

class EmailBackend(ABC):
    """Delivers one already-rendered message."""

    @abstractmethod
    async def send(self, to: str, subject: str, html: str, text: str) -> None:
        """Raises on delivery failure; the Notifier decides what to do with it."""


class ConsoleEmailBackend(EmailBackend):
    async def send(self, to: str, subject: str, html: str, text: str) -> None:
        logger.info("Email (console backend) to=%s subject=%r\n%s", to, subject, text)


class SmtpEmailBackend(EmailBackend):
    """
    Sends through an SMTP relay.

    smtplib is blocking, so each send runs in a worker thread with
    asyncio.to_thread. A new connection is opened per message.
    """

    def __init__(self, config: Settings):
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.username = config.smtp_username
        self.password = config.smtp_password
        self.use_tls = config.smtp_use_tls
        self.use_ssl = config.smtp_use_ssl
        self.sender = config.smtp_from
        self.timeout = config.smtp_timeout

    def _build_message(self, to: str, subject: str, html: str, text: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))
        return message

    def _send_sync(self, message: MIMEMultipart) -> None:
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.use_tls and not self.use_ssl:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)
        finally:
            server.quit()

    async def send(self, to: str, subject: str, html: str, text: str) -> None:
        message = self._build_message(to, subject, html, text)
        await asyncio.to_thread(self._send_sync, message)


def build_email_backend(config: Optional[Settings] = None) -> EmailBackend:
    config = config or default_settings
    if config.email_backend == "smtp":
        return SmtpEmailBackend(config)
    return ConsoleEmailBackend()


# ══════════════════════════════════════════════════════════════════════════
# Notifier
# ══════════════════════════════════════════════════════════════════════════

_templates = Environment(
    loader=PackageLoader("findmyhelper", "templates/email"),
    autoescape=select_autoescape(["html"]),
)


class Notifier:
    """
    Renders the marketplace emails and hands them to an EmailBackend.

    Args:
        backend: delivery mechanism; tests pass a recording backend.
        frontend_url: base URL of the web client for links in messages.
    """

    def __init__(self, backend: EmailBackend, frontend_url: str, app_name: str = "FindMyHelper"):
        self.backend = backend
        self.frontend_url = frontend_url.rstrip("/")
        self.app_name = app_name

    async def _deliver(self, kind: str, to: str, subject: str, template: str, **context) -> bool:
        try:
            html = _templates.get_template(template).render(
                app_name=self.app_name,
                frontend_url=self.frontend_url,
                **context,
            )
            text = _templates.get_template(template.replace(".html", ".txt")).render(
                app_name=self.app_name,
                frontend_url=self.frontend_url,
                **context,
            )
            await self.backend.send(to=to, subject=subject, html=html, text=text)
        except Exception as e:
            logger.error("Failed to send %s email to %s: %s", kind, to, str(e), exc_info=True)
            return False

        logger.info("Sent %s email to %s", kind, to)
        return True

    async def send_verification_email(self, user: User, token: str) -> bool:
        verify_url = f"{self.frontend_url}/verify-email?token={token}"
        return await self._deliver(
            "verification",
            user.email,
            f"Verify your email address - {self.app_name}",
            "verify_email.html",
            user=user,
            verify_url=verify_url,
        )

    async def send_provider_application_alert(
        self,
        admins: Iterable[User],
        provider: ServiceProvider,
        applicant: User,
        category: Optional[ServiceCategory],
    ) -> int:
        """Alert every admin about a new application. Returns how many sends succeeded."""
        recipients = [admin.email for admin in admins]
        if not recipients:
            logger.warning(
                "Provider application %s is awaiting review but no admin accounts exist",
                provider.id,
            )
            return 0

        submitted_at: datetime = provider.submitted_at
        sent = 0
        for email in recipients:
            ok = await self._deliver(
                "provider application",
                email,
                "New Service Provider Application - Action Required",
                "provider_application.html",
                provider=provider,
                applicant=applicant,
                category_name=category.name if category else "Unknown",
                submitted_on=submitted_at.strftime("%Y-%m-%d"),
                review_url=f"{self.frontend_url}/admin",
            )
            sent += int(ok)
        return sent

    async def send_approval_outcome(self, provider: ServiceProvider, user: User) -> bool:
        approved = provider.approval_status == "approved"
        subject = (
            "Your Service Provider Application Has Been Approved!"
            if approved
            else "Your Service Provider Application Status Update"
        )
        return await self._deliver(
            "approval outcome",
            user.email,
            subject,
            "approval_outcome.html",
            approved=approved,
            provider=provider,
            user=user,
            profile_url=f"{self.frontend_url}/profile",
        )


def build_notifier(config: Optional[Settings] = None) -> Notifier:
    config = config or default_settings
    return Notifier(
        backend=build_email_backend(config),
        frontend_url=config.frontend_url,
        app_name=config.app_name,
    )
