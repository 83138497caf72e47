"""Expose ORM models."""
from .call import Call, CallDirection, CallStatus, Sentiment
from .call_event import CallEvent
from .lead import Lead, LeadSource, LeadStatus

__all__ = [
    "Call",
    "CallDirection",
    "CallEvent",
    "CallStatus",
    "Lead",
    "LeadSource",
    "LeadStatus",
    "Sentiment",
]
