"""HTTP-level tests for the provider webhook endpoint."""
from __future__ import annotations

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings, get_settings
from app.core.security import compute_signature
from app.db.session import get_session
from app.main import app
from app.routers.webhook import get_processor
from app.services.webhook import WebhookProcessor
from support import envelope, load_call

SECRET = "s3cret"


@pytest_asyncio.fixture
async def client(session_factory, processor):
    async def _session_override():
        async with session_factory() as db_session:
            yield db_session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_processor] = lambda: processor
    app.dependency_overrides[get_settings] = lambda: Settings(_env_file=None, vapi_webhook_secret="")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _require_secret() -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(_env_file=None, vapi_webhook_secret=SECRET)


@pytest.mark.asyncio
async def test_call_start_is_acknowledged(client, session_factory) -> None:
    response = await client.post(
        "/api/webhooks/vapi",
        json=envelope("call-start", call={"customer": {"number": "+15551230000"}}),
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    call = await load_call(session_factory, "c1")
    assert call is not None


@pytest.mark.asyncio
async def test_unknown_event_and_unknown_call_are_acknowledged(client) -> None:
    unknown_type = await client.post("/api/webhooks/vapi", json=envelope("hang"))
    unknown_call = await client.post(
        "/api/webhooks/vapi", json=envelope("transcript", "nope", transcript={"role": "user", "text": "hi"})
    )

    assert unknown_type.status_code == 200
    assert unknown_call.status_code == 200
    assert unknown_call.json() == {"success": True}


@pytest.mark.asyncio
async def test_invalid_json_returns_error(client) -> None:
    response = await client.post(
        "/api/webhooks/vapi", content=b"{not json", headers={"content-type": "application/json"}
    )

    assert response.status_code == 500
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_store_failure_returns_error(client, monkeypatch) -> None:
    async def broken_handle(self, message, session):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(WebhookProcessor, "handle", broken_handle)

    response = await client.post("/api/webhooks/vapi", json=envelope("call-start"))

    assert response.status_code == 500
    assert response.json() == {"error": "database unavailable"}


@pytest.mark.asyncio
async def test_secret_is_required_when_configured(client) -> None:
    _require_secret()

    missing = await client.post("/api/webhooks/vapi", json=envelope("call-start"))
    wrong = await client.post(
        "/api/webhooks/vapi", json=envelope("call-start"), headers={"x-vapi-secret": "guess"}
    )

    assert missing.status_code == 401
    assert wrong.status_code == 401


@pytest.mark.asyncio
async def test_shared_secret_header_is_accepted(client, session_factory) -> None:
    _require_secret()

    response = await client.post(
        "/api/webhooks/vapi", json=envelope("call-start"), headers={"X-Vapi-Secret": SECRET}
    )

    assert response.status_code == 200
    assert await load_call(session_factory, "c1") is not None


@pytest.mark.asyncio
async def test_body_signature_is_accepted(client) -> None:
    _require_secret()
    body = json.dumps(envelope("call-start")).encode("utf-8")

    good = await client.post(
        "/api/webhooks/vapi",
        content=body,
        headers={"content-type": "application/json", "x-vapi-signature": f"sha256={compute_signature(SECRET, body)}"},
    )
    tampered = await client.post(
        "/api/webhooks/vapi",
        content=body.replace(b"c1", b"c2"),
        headers={"content-type": "application/json", "x-vapi-signature": compute_signature(SECRET, body)},
    )

    assert good.status_code == 200
    assert tampered.status_code == 401


@pytest.mark.asyncio
async def test_non_ascii_signature_is_rejected(client) -> None:
    _require_secret()
    body = json.dumps(envelope("call-start")).encode("utf-8")

    response = await client.post(
        "/api/webhooks/vapi",
        content=body,
        headers=[("content-type", "application/json"), ("x-vapi-signature", "sha256=éabc".encode("latin-1"))],
    )

    assert response.status_code == 401
