"""Call model."""
from __future__ import annotations

from datetime import datetime, timezone
import enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_values

if TYPE_CHECKING:
    from .call_event import CallEvent
    from .lead import Lead


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallDirection(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class CallStatus(str, enum.Enum):
    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    MISSED = "missed"


class Sentiment(str, enum.Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Call(Base):
    """One phone conversation handled by a voice assistant.

    ``provider_call_id`` is the join key every webhook event uses. ``version``
    is the optimistic-concurrency token bumped by each applied update.
    """

    __tablename__ = "calls"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    provider_call_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String)
    caller_name: Mapped[str | None] = mapped_column(String)
    direction: Mapped[CallDirection | None] = mapped_column(
        Enum(CallDirection, name="call_direction", values_callable=enum_values)
    )
    status: Mapped[CallStatus] = mapped_column(
        Enum(CallStatus, name="call_status", values_callable=enum_values), default=CallStatus.QUEUED, nullable=False
    )
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration: Mapped[int | None] = mapped_column(Integer)
    transcript: Mapped[str | None] = mapped_column(Text)
    recording_url: Mapped[str | None] = mapped_column(String)
    cost: Mapped[float | None] = mapped_column(Float)
    ai_summary: Mapped[str | None] = mapped_column(Text)
    sentiment: Mapped[Sentiment | None] = mapped_column(
        Enum(Sentiment, name="sentiment_type", values_callable=enum_values)
    )
    assistant_id: Mapped[str | None] = mapped_column(String)
    lead_id: Mapped[str | None] = mapped_column(ForeignKey("leads.id", ondelete="SET NULL"))
    owner_id: Mapped[str | None] = mapped_column(String)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    lead: Mapped["Lead | None"] = relationship("Lead", back_populates="calls")
    events: Mapped[list["CallEvent"]] = relationship(
        "CallEvent", back_populates="call", order_by="CallEvent.created_at"
    )
