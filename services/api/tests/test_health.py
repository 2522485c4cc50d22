"""Tests for health endpoint and error envelope."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health endpoint returns ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_unhandled_error_returns_structured_envelope(monkeypatch: pytest.MonkeyPatch):
    """Unexpected exceptions are rendered as {error: {code, message, detail}}."""
    from app.routes import leaderboard as leaderboard_routes

    async def broken_get_synced_user(uid: str):
        raise RuntimeError("boom")

    monkeypatch.setattr(leaderboard_routes, "get_synced_user", broken_get_synced_user)

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as ac:
        response = await ac.get("/v1/users/u1/tier")

    assert response.status_code == 500
    body = response.json()
    assert body["error"]["code"] == "INTERNAL_ERROR"
    assert body["error"]["detail"] is None
