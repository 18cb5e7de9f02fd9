import logging

import pytest
from httpx import ASGITransport, AsyncClient

from billdesk.config import settings
from billdesk.core.middleware import hash_user_id
from billdesk.main import app, serve


@pytest.mark.asyncio
async def test_request_id_in_response():
    """All responses include X-Request-ID header."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert "X-Request-ID" in response.headers
    # UUID format: 8-4-4-4-12
    assert len(response.headers["X-Request-ID"]) == 36


@pytest.mark.asyncio
async def test_404_returns_structured_json():
    """Non-existent endpoint returns structured JSON error with request_id."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/nonexistent")
    assert response.status_code == 404
    data = response.json()
    assert data["error"] is True
    assert data["status_code"] == 404
    assert data["request_id"] == response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_unauthenticated_returns_401(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] is True


@pytest.mark.asyncio
async def test_validation_error_lists_fields(client: AsyncClient):
    response = await client.post("/api/auth/login", json={"email": "x@example.com"})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert any("password" in err["loc"] for err in data["errors"])


@pytest.mark.asyncio
async def test_access_log_hashes_user(client: AsyncClient, end_user, caplog):
    with caplog.at_level(logging.INFO, logger="billdesk.access"):
        await client.get("/api/auth/me", headers=end_user.headers)
    lines = [r.getMessage() for r in caplog.records if r.name == "billdesk.access"]
    assert lines
    assert f"user={hash_user_id(end_user.user.id)}" in lines[-1]
    assert str(end_user.user.id) not in lines[-1]
    assert "role=user" in lines[-1]


def test_hash_user_id_is_stable():
    assert hash_user_id("abc") == hash_user_id("abc")
    assert len(hash_user_id("abc")) == 12


def test_serve_uses_configured_address(monkeypatch):
    import uvicorn

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.setattr(settings, "host", "127.0.0.1")
    monkeypatch.setattr(settings, "port", 9100)

    serve()

    target, kwargs = calls[0]
    assert target == "billdesk.main:app"
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9100
