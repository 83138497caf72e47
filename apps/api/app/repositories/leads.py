"""Lead repository helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.lead import Lead, LeadSource, LeadStatus


async def get_by_phone(session: AsyncSession, phone: str) -> Lead | None:
    """Return the oldest lead registered for a phone number."""

    stmt: Select[tuple[Lead]] = (
        select(Lead).where(Lead.phone == phone).order_by(Lead.created_at.asc()).limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_lead(
    session: AsyncSession,
    *,
    phone: str,
    name: str | None,
    owner_id: str | None,
    source: LeadSource = LeadSource.PHONE,
    status: LeadStatus = LeadStatus.CONTACTED,
) -> Lead:
    """Insert a lead; duplicates on ``phone`` raise ``IntegrityError`` at flush."""

    lead = Lead(
        id=str(uuid4()),
        name=name,
        phone=phone,
        source=source,
        status=status,
        owner_id=owner_id,
        created_at=datetime.now(timezone.utc),
    )
    session.add(lead)
    await session.flush()
    return lead
