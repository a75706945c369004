"""
Server-side login sessions.

The browser only holds a signed cookie with the session `id`; the row
decides which user it belongs to and when it stops being valid.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from findmyhelper.database import Base, utcnow


class UserSession(Base):
    __tablename__ = "user_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default_factory=utcnow
    )

    __table_args__ = (
        Index("idx_user_sessions_expires_at", "expires_at"),
    )
