"""Admin endpoints for reviewing processed calls."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..schemas import admin as admin_schema
from ..services import call_review

router = APIRouter()


@router.get("/calls", response_model=admin_schema.CallListResponse)
async def list_calls(
    from_: datetime | None = Query(default=None, alias="from"),
    to: datetime | None = None,
    q: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
) -> admin_schema.CallListResponse:
    """Return the newest call summaries."""

    return await call_review.list_calls(session, start=from_, end=to, q=q, limit=limit)


@router.get("/calls/{provider_call_id}", response_model=admin_schema.CallDetailResponse)
async def get_call(
    provider_call_id: str,
    session: AsyncSession = Depends(get_session),
) -> admin_schema.CallDetailResponse:
    """Return call transcript, analysis and audit events."""

    return await call_review.get_call_detail(session, provider_call_id)
