"""Schemas for the provider's webhook envelope.

The provider posts ``{"message": {"type": ..., "call": {...}, ...}}``. Each
known ``message.type`` parses into its own model; anything else becomes an
``UnknownMessage`` that the processor acknowledges without side effects.
"""
from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ProviderModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Customer(ProviderModel):
    number: str | None = None
    name: str | None = None


class ProviderCall(ProviderModel):
    id: str | None = None
    customer: Customer | None = None
    type: str | None = None
    assistant_id: str | None = Field(default=None, alias="assistantId")
    recording_url: str | None = Field(default=None, alias="recordingUrl")
    cost: float | None = None


class TranscriptTurn(ProviderModel):
    role: str | None = None
    text: str | None = None


class BaseMessage(ProviderModel):
    call: ProviderCall | None = None

    @property
    def provider_call_id(self) -> str | None:
        return self.call.id if self.call is not None else None


class CallStartMessage(BaseMessage):
    type: Literal["call-start"]


class TranscriptMessage(BaseMessage):
    type: Literal["transcript"]
    transcript: TranscriptTurn | None = None


class StatusUpdateMessage(BaseMessage):
    type: Literal["status-update"]
    status: str | None = None


class CallEndMessage(BaseMessage):
    type: Literal["call-end"]


class FunctionCallMessage(BaseMessage):
    type: Literal["function-call"]
    function_call: dict[str, Any] | None = Field(default=None, alias="functionCall")


class UnknownMessage(BaseModel):
    type: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


WebhookMessage = Union[
    CallStartMessage,
    TranscriptMessage,
    StatusUpdateMessage,
    CallEndMessage,
    FunctionCallMessage,
    UnknownMessage,
]

_MESSAGE_TYPES: dict[str, type[BaseMessage]] = {
    "call-start": CallStartMessage,
    "transcript": TranscriptMessage,
    "status-update": StatusUpdateMessage,
    "call-end": CallEndMessage,
    "function-call": FunctionCallMessage,
}


class WebhookAck(BaseModel):
    success: bool = True


def parse_envelope(payload: Any) -> WebhookMessage:
    """Classify a decoded webhook body into one of the message variants.

    Raises ``ValueError`` when the body is not a JSON object and
    ``pydantic.ValidationError`` when a known message carries mistyped fields.
    """

    if not isinstance(payload, dict):
        raise ValueError("Webhook body must be a JSON object")

    message = payload.get("message")
    if not isinstance(message, dict):
        return UnknownMessage(type=payload.get("type"), raw=payload)

    message_type = message.get("type")
    model = _MESSAGE_TYPES.get(message_type) if isinstance(message_type, str) else None
    if model is None:
        return UnknownMessage(type=message_type if isinstance(message_type, str) else None, raw=message)
    return model.model_validate(message)
