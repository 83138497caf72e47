"""Test doubles and database helpers shared across test modules."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select

from app.models.call import Call
from app.models.call_event import CallEvent
from app.models.lead import Lead
from app.services.summarizer import SummarizationError

T0 = datetime(2025, 10, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSummarizer:
    """Records transcripts it was asked about and returns a canned analysis."""

    def __init__(self, analysis: str = "Summary: short call.\nSentiment: positive", error: Exception | None = None):
        self.analysis = analysis
        self.error = error
        self.calls: list[str] = []

    async def summarize(self, transcript: str) -> str:
        self.calls.append(transcript)
        if self.error is not None:
            raise self.error
        if not self.analysis:
            raise SummarizationError("empty analysis")
        return self.analysis


def utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on the way back; normalise for comparisons."""

    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def envelope(message_type: str, call_id: str | None = "c1", **fields: Any) -> dict[str, Any]:
    call: dict[str, Any] = dict(fields.pop("call", {}))
    if call_id is not None:
        call.setdefault("id", call_id)
    return {"type": message_type, "message": {"type": message_type, "call": call, **fields}}


async def load_call(session_factory, provider_call_id: str) -> Call | None:
    async with session_factory() as db_session:
        result = await db_session.execute(select(Call).where(Call.provider_call_id == provider_call_id))
        return result.scalar_one_or_none()


async def load_leads(session_factory, phone: str) -> list[Lead]:
    async with session_factory() as db_session:
        result = await db_session.execute(select(Lead).where(Lead.phone == phone))
        return list(result.scalars().all())


async def load_events(session_factory, call_id: str) -> list[CallEvent]:
    async with session_factory() as db_session:
        result = await db_session.execute(
            select(CallEvent).where(CallEvent.call_id == call_id).order_by(CallEvent.created_at.asc())
        )
        return list(result.scalars().all())
