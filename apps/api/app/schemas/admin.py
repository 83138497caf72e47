"""Schemas for admin API."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..models.call import CallDirection, CallStatus, Sentiment


class CallSummary(BaseModel):
    call_id: str
    provider_call_id: str
    status: CallStatus
    direction: CallDirection | None = None
    phone_number: str | None = None
    caller_name: str | None = None
    started_at: datetime | None = None
    duration_sec: int | None = None
    sentiment: Sentiment | None = None
    lead_id: str | None = None


class CallListResponse(BaseModel):
    items: list[CallSummary]


class TranscriptLine(BaseModel):
    speaker: str
    text: str


class CallEventEntry(BaseModel):
    event_type: str
    created_at: datetime
    data: Any = None


class CallDetail(CallSummary):
    ended_at: datetime | None = None
    recording_url: str | None = None
    cost: float | None = None
    assistant_id: str | None = None
    transcript: list[TranscriptLine] = Field(default_factory=list)
    summary: str | None = None
    events: list[CallEventEntry] = Field(default_factory=list)


class CallDetailResponse(BaseModel):
    call: CallDetail
