"""ORM model for the `service_categories` taxonomy (seeded at startup)."""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from findmyhelper.database import Base


class ServiceCategory(Base):
    __tablename__ = "service_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, init=False)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    # Icon identifier understood by the web/mobile clients
    icon: Mapped[str] = mapped_column(String(50), default="")

    def __repr__(self) -> str:
        return f"<ServiceCategory(id={self.id}, name='{self.name}')>"
