"""Inbound webhook endpoint for the voice provider."""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.security import verify_webhook
from ..db.session import get_session
from ..schemas import webhook as webhook_schema
from ..services.summarizer import GeminiSummarizer
from ..services.webhook import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def get_processor() -> WebhookProcessor:
    """Build the processor once per process from the cached settings."""

    settings = get_settings()
    return WebhookProcessor(settings, GeminiSummarizer(settings))


@router.post("/vapi", dependencies=[Depends(verify_webhook)], response_model=webhook_schema.WebhookAck)
async def vapi_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    processor: WebhookProcessor = Depends(get_processor),
) -> JSONResponse:
    """Reduce one provider call event into the call record store."""

    try:
        payload = await request.json()
        message = webhook_schema.parse_envelope(payload)
        logger.info("Received provider webhook: %s", message.type)
        ack = await processor.handle(message, session)
    except Exception as exc:  # noqa: BLE001 - provider retries on 5xx
        logger.exception("Webhook processing failed: %s", exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(exc)})

    return JSONResponse(content=ack.model_dump())
