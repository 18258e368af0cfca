"""Integration test fixtures.

Provides a fully wired AppState with in-memory SQLite and a real httpx
client (mocked per-test with respx), plus an ASGI client for the service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from subcache.config import Settings
from subcache.fetcher import IdentityRotatingFetcher
from subcache.orchestrator import FetchOrchestrator
from subcache.server import create_app
from subcache.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from subcache.cache import SubscriptionCache


@pytest.fixture()
async def app_state(cache: SubscriptionCache) -> AsyncGenerator[AppState, None]:
    """Full AppState wired like the production lifespan."""
    async with httpx.AsyncClient() as client:
        settings = Settings()
        yield AppState(
            settings=settings,
            cache=cache,
            orchestrator=FetchOrchestrator(IdentityRotatingFetcher(client), cache),
            http_client=client,
        )


@pytest.fixture()
async def api(app_state: AppState) -> AsyncGenerator[httpx.AsyncClient, None]:
    """ASGI client for the Starlette app; never touches the network."""
    app = create_app(state=app_state)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://subcache.test"
    ) as client:
        yield client
