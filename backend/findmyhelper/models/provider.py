"""
FindMyHelper Backend — Service Provider Model
===============================================

What:  ORM model for the `service_providers` table and its approval states.
Who:   Approval workflow (state transitions), provider directory (public
       listings), service requests and reviews (rating aggregate).

Approval lifecycle:

    ┌─────────┐  approve   ┌──────────┐
    │ pending │──────────▶│ approved │
    └─────────┘            └──────────┘
         │      reject     ┌──────────┐
         └───────────────▶│ rejected │
                           └──────────┘

    Both terminal states are final. Only approved providers are visible
    in public listings.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from findmyhelper.database import Base, utcnow


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ServiceProvider(Base):
    """
    A user's provider profile (at most one per user).

    Review metadata (`admin_notes`, `reviewed_at`, `reviewed_by`) is stamped
    by the approval workflow on the single transition out of `pending`.
    `reviewed_by` stays NULL when the profile was auto-approved.
    """

    __tablename__ = "service_providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, init=False)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True
    )
    category_id: Mapped[int] = mapped_column(ForeignKey("service_categories.id"))

    hourly_rate: Mapped[float] = mapped_column(Float)
    bio: Mapped[str] = mapped_column(Text)
    years_of_experience: Mapped[int] = mapped_column(Integer)
    availability: Mapped[str] = mapped_column(String(255))

    # Mean of all review ratings, one decimal place
    rating: Mapped[float] = mapped_column(Float, default=0.0)
    completed_jobs: Mapped[int] = mapped_column(Integer, default=0)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    approval_status: Mapped[str] = mapped_column(
        String(20),
        default=ApprovalStatus.PENDING.value,
        comment="pending, approved, rejected",
    )

    id_verification_image: Mapped[str | None] = mapped_column(Text, default=None)
    admin_notes: Mapped[str | None] = mapped_column(Text, default=None)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default_factory=utcnow
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    reviewed_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )

    __table_args__ = (
        Index("idx_service_providers_approval_status", "approval_status"),
        Index("idx_service_providers_category_id", "category_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceProvider(id={self.id}, user_id={self.user_id}, "
            f"status='{self.approval_status}')>"
        )
