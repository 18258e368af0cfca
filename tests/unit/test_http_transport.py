"""Tests for AdminAuthMiddleware.

Each test exercises the middleware directly via httpx's ASGI transport so no
real server is started. The inner app is a trivial 200-OK echo that never
runs if the middleware short-circuits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from subcache.transport import AdminAuthMiddleware, is_admin_path

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _ok_app(scope: Scope, receive: Receive, send: Send) -> None:
    """Minimal ASGI app that always returns 200 OK."""
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"ok"})


def _client(app: ASGIApp) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://localhost",
    )


# ---------------------------------------------------------------------------
# Path classification
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("path", ["/cache-stats", "/cache-clear", "/cache/abc123"])
def test_admin_paths(path: str) -> None:
    assert is_admin_path(path)


@pytest.mark.parametrize("path", ["/fetch", "/xray", "/healthz", "/cache"])
def test_public_paths(path: str) -> None:
    assert not is_admin_path(path)


# ---------------------------------------------------------------------------
# Auth disabled (no admin key)
# ---------------------------------------------------------------------------


async def test_no_key_allows_admin_requests() -> None:
    app = AdminAuthMiddleware(_ok_app, admin_key="")
    async with _client(app) as client:
        response = await client.get("/cache-stats")
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# Auth enabled
# ---------------------------------------------------------------------------


async def test_correct_key_passes() -> None:
    app = AdminAuthMiddleware(_ok_app, admin_key="secret-key")
    async with _client(app) as client:
        response = await client.post(
            "/cache-clear", headers={"Authorization": "Bearer secret-key"}
        )
    assert response.status_code == 200


async def test_wrong_key_returns_401() -> None:
    app = AdminAuthMiddleware(_ok_app, admin_key="secret-key")
    async with _client(app) as client:
        response = await client.get("/cache-stats", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


async def test_missing_header_returns_401() -> None:
    app = AdminAuthMiddleware(_ok_app, admin_key="secret-key")
    async with _client(app) as client:
        response = await client.delete("/cache/abc123")
    assert response.status_code == 401


async def test_malformed_header_returns_401() -> None:
    """Header present but not in 'Bearer <key>' format."""
    app = AdminAuthMiddleware(_ok_app, admin_key="secret-key")
    async with _client(app) as client:
        response = await client.get("/cache-stats", headers={"Authorization": "secret-key"})
    assert response.status_code == 401


async def test_subscription_paths_never_guarded() -> None:
    """Subscription clients cannot send custom headers; /fetch and /xray stay open."""
    app = AdminAuthMiddleware(_ok_app, admin_key="secret-key")
    async with _client(app) as client:
        fetch = await client.get("/fetch")
        xray = await client.get("/xray")
    assert fetch.status_code == 200
    assert xray.status_code == 200
