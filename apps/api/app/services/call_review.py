"""Read-side helpers for reviewing processed calls."""
from __future__ import annotations

from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.call import Call
from ..repositories import calls as calls_repo
from ..schemas import admin as schemas


def split_transcript(transcript: str | None) -> list[schemas.TranscriptLine]:
    """Turn the flattened ``role: text`` log back into speaker turns."""

    lines: list[schemas.TranscriptLine] = []
    for raw in (transcript or "").splitlines():
        if not raw.strip():
            continue
        speaker, sep, text = raw.partition(": ")
        if not sep:
            # Continuation of a multi-line utterance.
            if lines:
                lines[-1].text = f"{lines[-1].text}\n{raw}"
                continue
            speaker, text = "", raw
        lines.append(schemas.TranscriptLine(speaker=speaker, text=text))
    return lines


def _summarize(call: Call) -> schemas.CallSummary:
    return schemas.CallSummary(
        call_id=call.id,
        provider_call_id=call.provider_call_id,
        status=call.status,
        direction=call.direction,
        phone_number=call.phone_number,
        caller_name=call.caller_name,
        started_at=call.start_time,
        duration_sec=call.duration,
        sentiment=call.sentiment,
        lead_id=call.lead_id,
    )


async def list_calls(
    session: AsyncSession,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    q: str | None = None,
    limit: int = 50,
) -> schemas.CallListResponse:
    async with session.begin():
        calls = await calls_repo.list_calls(session, start=start, end=end, q=q, limit=limit)
    return schemas.CallListResponse(items=[_summarize(call) for call in calls])


async def get_call_detail(session: AsyncSession, provider_call_id: str) -> schemas.CallDetailResponse:
    """Return transcript, analysis and audit trail for one call."""

    async with session.begin():
        call = await calls_repo.get_by_provider_id(session, provider_call_id)
        if call is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")
        events = await calls_repo.list_events(session, call.id)

    summary = _summarize(call)
    detail = schemas.CallDetail(
        **summary.model_dump(),
        ended_at=call.end_time,
        recording_url=call.recording_url,
        cost=call.cost,
        assistant_id=call.assistant_id,
        transcript=split_transcript(call.transcript),
        summary=call.ai_summary,
        events=[
            schemas.CallEventEntry(event_type=event.event_type, created_at=event.created_at, data=event.data)
            for event in events
        ],
    )
    return schemas.CallDetailResponse(call=detail)
