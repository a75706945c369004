"""
FindMyHelper Backend — User Model
===================================

What:  ORM model for the `users` table.
Who:   Identity service (registration, login, federated linking), sessions,
       every ownership check.

A user authenticates either with a local password (bcrypt hash in
`password`) or through the federated identity provider (`firebase_uid`).
Federated users have no password and are created already verified.
Users are never hard-deleted.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from findmyhelper.database import Base, utcnow


class User(Base):
    """A marketplace account: client, provider, admin, or any mix of these."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, init=False)

    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))

    # bcrypt hash; NULL for accounts created through federated login
    password: Mapped[str | None] = mapped_column(String(255), default=None)

    phone_number: Mapped[str | None] = mapped_column(String(30), default=None)
    profile_picture: Mapped[str | None] = mapped_column(Text, default=None)

    is_service_provider: Mapped[bool] = mapped_column(Boolean, default=False)
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="Grants access to the provider review queue",
    )

    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    email_verification_token: Mapped[str | None] = mapped_column(
        String(64), default=None, index=True
    )

    firebase_uid: Mapped[str | None] = mapped_column(
        String(128), default=None, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default_factory=utcnow
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', admin={self.is_admin})>"
