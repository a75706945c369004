"""ORM model for client-authored tasks (`tasks` table)."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from findmyhelper.database import Base, utcnow


class TaskStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Task(Base):
    """
    A work request posted by a client.

    Only the owning client may update or delete it. `completed_at` is
    stamped the first time the status becomes `completed`.
    """

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, init=False)

    client_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    category_id: Mapped[int] = mapped_column(ForeignKey("service_categories.id"))

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    location: Mapped[str] = mapped_column(String(255))
    budget: Mapped[float | None] = mapped_column(Float, default=None)

    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.OPEN.value)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default_factory=utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    __table_args__ = (
        Index("idx_tasks_client_id", "client_id"),
        Index("idx_tasks_category_id", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, client_id={self.client_id}, status='{self.status}')>"
