"""Lead model."""
from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import DateTime, Enum, String
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from .call import Call

from .base import Base, enum_values


class LeadSource(str, enum.Enum):
    PHONE = "phone"
    WEB = "web"
    REFERRAL = "referral"
    OTHER = "other"


class LeadStatus(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


class Lead(Base):
    """Contact matched to, or discovered from, a caller's phone number."""

    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str | None] = mapped_column(String)
    phone: Mapped[str | None] = mapped_column(String, unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String)
    source: Mapped[LeadSource | None] = mapped_column(Enum(LeadSource, name="lead_source", values_callable=enum_values))
    status: Mapped[LeadStatus] = mapped_column(
        Enum(LeadStatus, name="lead_status", values_callable=enum_values), default=LeadStatus.NEW, nullable=False
    )
    owner_id: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    calls: Mapped[list["Call"]] = relationship("Call", back_populates="lead")
