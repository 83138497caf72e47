"""Reduce provider call lifecycle webhooks into persisted call records."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..models.call import Call, CallDirection, CallStatus, Sentiment
from ..repositories import calls as calls_repo
from ..schemas import webhook as schemas
from .finalization import resolve_lead
from .summarizer import SummarizationError, Summarizer, parse_sentiment

logger = logging.getLogger(__name__)

PROVIDER_STATUS_MAP: dict[str, CallStatus] = {
    "ringing": CallStatus.RINGING,
    "in-progress": CallStatus.IN_PROGRESS,
    "ended": CallStatus.COMPLETED,
}
TERMINAL_STATUSES = frozenset({CallStatus.COMPLETED, CallStatus.FAILED, CallStatus.MISSED})

EVENT_TRANSCRIPT = "transcript"
EVENT_FUNCTION_CALL = "function-call"
EVENT_CALL_ENDED = "call-ended"

Mutation = Callable[[Call], dict[str, Any]]


class CallUpdateConflictError(RuntimeError):
    """Raised when concurrent writers kept invalidating our read of a call."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_tz(value: datetime) -> datetime:
    """Ensure the provided datetime is timezone-aware in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def map_provider_status(status: str | None) -> CallStatus:
    return PROVIDER_STATUS_MAP.get((status or "").strip().lower(), CallStatus.QUEUED)


def map_direction(call_type: str | None) -> CallDirection | None:
    """Provider call types look like ``inboundPhoneCall`` / ``outboundPhoneCall``."""

    if not call_type:
        return None
    if "outbound" in call_type.lower():
        return CallDirection.OUTBOUND
    return CallDirection.INBOUND


def append_transcript(existing: str | None, role: str | None, text: str | None) -> str:
    line = f"{role or ''}: {text or ''}"
    return f"{existing or ''}\n{line}".strip()


def compute_duration(start_time: datetime | None, end_time: datetime) -> int:
    """Whole seconds between start and end; 0 without a start or on clock skew."""

    if start_time is None:
        return 0
    seconds = int((end_time - _ensure_tz(start_time)).total_seconds())
    if seconds < 0:
        logger.warning("Call ended before it started (%ss); clamping duration to 0", seconds)
        return 0
    return seconds


class WebhookProcessor:
    """Apply one webhook message at a time against the call and lead stores.

    Every call mutation is a read-modify-write guarded by the row's ``version``
    column, retried up to ``call_update_max_attempts`` times when a concurrent
    delivery for the same call wins the race.
    """

    def __init__(
        self,
        settings: Settings,
        summarizer: Summarizer,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._summarizer = summarizer
        self._clock = clock or _utcnow
        self._max_attempts = settings.call_update_max_attempts

    async def handle(self, message: schemas.WebhookMessage, session: AsyncSession) -> schemas.WebhookAck:
        if isinstance(message, schemas.UnknownMessage):
            logger.debug("Ignoring webhook message of type %r", message.type)
            return schemas.WebhookAck()

        provider_call_id = message.provider_call_id
        if not provider_call_id:
            logger.warning("Webhook %s carried no call id; ignoring", message.type)
            return schemas.WebhookAck()

        if isinstance(message, schemas.CallStartMessage):
            await self._on_call_start(message, provider_call_id, session)
        elif isinstance(message, schemas.TranscriptMessage):
            await self._on_transcript(message, provider_call_id, session)
        elif isinstance(message, schemas.StatusUpdateMessage):
            await self._on_status_update(message, provider_call_id, session)
        elif isinstance(message, schemas.CallEndMessage):
            await self._on_call_end(message, provider_call_id, session)
        elif isinstance(message, schemas.FunctionCallMessage):
            await self._on_function_call(message, provider_call_id, session)

        return schemas.WebhookAck()

    async def _apply(
        self,
        session: AsyncSession,
        provider_call_id: str,
        mutate: Mutation,
        *,
        event_type: str | None = None,
        event_data: Any = None,
    ) -> Call | None:
        """Run ``mutate`` against the current row and persist its result.

        Returns the row as read before the update, or ``None`` when no call
        exists for ``provider_call_id``. The audit event, if any, commits in the
        same transaction as the update.
        """

        for attempt in range(1, self._max_attempts + 1):
            async with session.begin():
                call = await calls_repo.get_by_provider_id(session, provider_call_id)
                if call is None:
                    return None

                values = mutate(call)
                if values:
                    applied = await calls_repo.update_by_provider_id(
                        session, provider_call_id, expected_version=call.version, **values
                    )
                    if not applied:
                        logger.info(
                            "Call %s changed concurrently (attempt %d/%d); retrying",
                            provider_call_id,
                            attempt,
                            self._max_attempts,
                        )
                        continue

                if event_type is not None:
                    await calls_repo.add_event(session, call_id=call.id, event_type=event_type, data=event_data)
                return call

        raise CallUpdateConflictError(
            f"Call {provider_call_id} kept changing; gave up after {self._max_attempts} attempts"
        )

    async def _on_call_start(
        self, message: schemas.CallStartMessage, provider_call_id: str, session: AsyncSession
    ) -> None:
        now = self._clock()
        provider_call = message.call or schemas.ProviderCall()
        customer = provider_call.customer or schemas.Customer()
        identity: dict[str, Any] = {
            "phone_number": customer.number,
            "caller_name": customer.name,
            "direction": map_direction(provider_call.type),
            "assistant_id": provider_call.assistant_id,
        }

        try:
            async with session.begin():
                existing = await calls_repo.get_by_provider_id(session, provider_call_id)
                if existing is None:
                    await calls_repo.create_call(
                        session,
                        provider_call_id=provider_call_id,
                        status=CallStatus.IN_PROGRESS,
                        start_time=now,
                        **identity,
                    )
                    logger.info("Call %s started", provider_call_id)
                    return
        except IntegrityError:
            logger.info("Call %s was registered concurrently; adopting existing row", provider_call_id)

        def adopt(call: Call) -> dict[str, Any]:
            # Pre-registered outbound calls keep their owner, lead and identity.
            values = {key: value for key, value in identity.items() if value is not None and getattr(call, key) is None}
            if call.start_time is None:
                values["start_time"] = now
            if call.status not in TERMINAL_STATUSES:
                values["status"] = CallStatus.IN_PROGRESS
            return values

        await self._apply(session, provider_call_id, adopt)
        logger.info("Call %s started on existing record", provider_call_id)

    async def _on_transcript(
        self, message: schemas.TranscriptMessage, provider_call_id: str, session: AsyncSession
    ) -> None:
        turn = message.transcript or schemas.TranscriptTurn()
        if not turn.role and not turn.text:
            logger.debug("Transcript for %s carried no turn; ignoring", provider_call_id)
            return

        def append(call: Call) -> dict[str, Any]:
            return {"transcript": append_transcript(call.transcript, turn.role, turn.text)}

        call = await self._apply(
            session,
            provider_call_id,
            append,
            event_type=EVENT_TRANSCRIPT,
            event_data=turn.model_dump(exclude_none=True),
        )
        if call is None:
            self._log_missing(provider_call_id, message.type)

    async def _on_status_update(
        self, message: schemas.StatusUpdateMessage, provider_call_id: str, session: AsyncSession
    ) -> None:
        status = map_provider_status(message.status)
        call = await self._apply(session, provider_call_id, lambda _call: {"status": status})
        if call is None:
            self._log_missing(provider_call_id, message.type)
            return
        logger.info("Call %s status %s -> %s", provider_call_id, message.status, status.value)

    async def _on_function_call(
        self, message: schemas.FunctionCallMessage, provider_call_id: str, session: AsyncSession
    ) -> None:
        call = await self._apply(
            session,
            provider_call_id,
            lambda _call: {},
            event_type=EVENT_FUNCTION_CALL,
            event_data=message.function_call,
        )
        if call is None:
            self._log_missing(provider_call_id, message.type)

    async def _on_call_end(
        self, message: schemas.CallEndMessage, provider_call_id: str, session: AsyncSession
    ) -> None:
        now = self._clock()
        provider_call = message.call or schemas.ProviderCall()

        def finalize(call: Call) -> dict[str, Any]:
            return {
                "status": CallStatus.COMPLETED,
                "end_time": now,
                "duration": compute_duration(call.start_time, now),
                "recording_url": provider_call.recording_url,
                "cost": provider_call.cost,
            }

        call = await self._apply(
            session,
            provider_call_id,
            finalize,
            event_type=EVENT_CALL_ENDED,
            event_data=provider_call.model_dump(by_alias=True, exclude_none=True),
        )
        if call is None:
            self._log_missing(provider_call_id, message.type)
            return

        logger.info("Call %s completed", provider_call_id)
        if call.transcript:
            await self._summarize_and_link(session, provider_call_id, call)

    async def _summarize_and_link(self, session: AsyncSession, provider_call_id: str, call: Call) -> None:
        """Best effort: failures here never undo the finalization already committed."""

        try:
            analysis = await self._summarizer.summarize(call.transcript or "")
        except SummarizationError as exc:
            logger.warning("No summary for call %s: %s", provider_call_id, exc)
            return
        except Exception:  # noqa: BLE001 - summary is optional
            logger.exception("Summarization failed for call %s", provider_call_id)
            return

        sentiment = parse_sentiment(analysis) or Sentiment.NEUTRAL
        try:
            await self._apply(
                session,
                provider_call_id,
                lambda _call: {"ai_summary": analysis, "sentiment": sentiment},
            )
            if not call.phone_number:
                return
            lead, created = await resolve_lead(
                session,
                phone=call.phone_number,
                caller_name=call.caller_name,
                owner_id=call.owner_id,
            )
            await self._apply(session, provider_call_id, lambda _call: {"lead_id": lead.id})
            logger.info(
                "Call %s linked to %s lead %s", provider_call_id, "new" if created else "existing", lead.id
            )
        except Exception:  # noqa: BLE001 - lead linking is best effort
            logger.exception("Post-call finalization failed for call %s", provider_call_id)

    @staticmethod
    def _log_missing(provider_call_id: str, event_type: str) -> None:
        logger.warning("No call record for %s; dropping %s event", provider_call_id, event_type)
