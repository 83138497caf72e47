"""Call repository helpers keyed by the provider's call identifier."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Select, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.call import Call
from ..models.call_event import CallEvent


async def get_by_provider_id(session: AsyncSession, provider_call_id: str) -> Call | None:
    """Return the freshly loaded call for a provider call id."""

    stmt: Select[tuple[Call]] = (
        select(Call)
        .where(Call.provider_call_id == provider_call_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_call(session: AsyncSession, *, provider_call_id: str, **fields: Any) -> Call:
    """Insert a new call row; a concurrent insert surfaces as ``IntegrityError`` on flush."""

    call = Call(id=str(uuid4()), provider_call_id=provider_call_id, version=1, **fields)
    session.add(call)
    await session.flush()
    return call


async def update_by_provider_id(
    session: AsyncSession,
    provider_call_id: str,
    *,
    expected_version: int,
    **values: Any,
) -> bool:
    """Apply ``values`` only if the row still carries ``expected_version``.

    Returns ``False`` when another writer bumped the version first; the caller
    re-reads and retries.
    """

    stmt = (
        update(Call)
        .where(Call.provider_call_id == provider_call_id, Call.version == expected_version)
        .values(**values, version=expected_version + 1, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def add_event(
    session: AsyncSession,
    *,
    call_id: str,
    event_type: str,
    data: Any,
) -> CallEvent:
    """Append an audit row for the call."""

    event = CallEvent(
        id=str(uuid4()),
        call_id=call_id,
        event_type=event_type,
        data=data,
        created_at=datetime.now(timezone.utc),
    )
    session.add(event)
    await session.flush()
    return event


async def list_events(session: AsyncSession, call_id: str) -> list[CallEvent]:
    """Return audit rows for a call, oldest first."""

    stmt = select(CallEvent).where(CallEvent.call_id == call_id).order_by(CallEvent.created_at.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_calls(
    session: AsyncSession,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    q: str | None = None,
    limit: int = 50,
) -> list[Call]:
    """Return the newest calls, optionally filtered by time window and caller."""

    stmt = select(Call).order_by(Call.created_at.desc()).limit(limit)
    if start is not None:
        stmt = stmt.where(Call.created_at >= start)
    if end is not None:
        stmt = stmt.where(Call.created_at <= end)
    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(or_(Call.phone_number.ilike(pattern), Call.caller_name.ilike(pattern)))
    result = await session.execute(stmt)
    return list(result.scalars().all())
