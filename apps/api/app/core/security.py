"""Webhook authentication helpers."""
from __future__ import annotations

import hashlib
import hmac
import logging

from fastapi import Depends, HTTPException, Request, status

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-vapi-secret"
SIGNATURE_HEADER = "x-vapi-signature"


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""

    return hmac.new(secret.encode("utf-8"), msg=body, digestmod=hashlib.sha256).hexdigest()


def is_authentic(secret: str, body: bytes, *, shared_secret: str | None, signature: str | None) -> bool:
    """Accept either the shared secret header or a body signature."""

    if shared_secret and hmac.compare_digest(shared_secret.encode("utf-8"), secret.encode("utf-8")):
        return True
    if signature:
        expected = compute_signature(secret, body)
        provided = signature.split("sha256=")[-1].strip()
        return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
    return False


async def verify_webhook(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """FastAPI dependency rejecting webhook calls that fail authentication."""

    secret = settings.vapi_webhook_secret.strip()
    if not secret:
        logger.warning("VAPI_WEBHOOK_SECRET is not set; accepting unauthenticated webhook")
        return

    body = await request.body()
    if not is_authentic(
        secret,
        body,
        shared_secret=request.headers.get(SECRET_HEADER),
        signature=request.headers.get(SIGNATURE_HEADER),
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")
