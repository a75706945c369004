"""ORM model for service requests: a client's proposal to a provider."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from findmyhelper.database import Base, utcnow


class ServiceRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ServiceRequest(Base):
    """
    Links a client, a provider and optionally one of the client's tasks.

    Either party may update it. A review can only be left once the status
    is `completed`.
    """

    __tablename__ = "service_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, init=False)

    client_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    provider_id: Mapped[int] = mapped_column(
        ForeignKey("service_providers.id", ondelete="CASCADE")
    )
    task_id: Mapped[int | None] = mapped_column(
        ForeignKey("tasks.id", ondelete="SET NULL"), default=None
    )

    message: Mapped[str] = mapped_column(Text)
    proposed_price: Mapped[float | None] = mapped_column(Float, default=None)

    status: Mapped[str] = mapped_column(
        String(20), default=ServiceRequestStatus.PENDING.value
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default_factory=utcnow
    )

    __table_args__ = (
        Index("idx_service_requests_client_id", "client_id"),
        Index("idx_service_requests_provider_id", "provider_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceRequest(id={self.id}, client_id={self.client_id}, "
            f"provider_id={self.provider_id}, status='{self.status}')>"
        )
