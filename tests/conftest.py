"""Shared test fixtures for the subcache test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from subcache.cache import SubscriptionCache
from subcache.identities import ClientIdentity

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@pytest.fixture()
async def db() -> AsyncGenerator[aiosqlite.Connection, None]:
    async with aiosqlite.connect(":memory:") as conn:
        yield conn


@pytest.fixture()
async def cache(db: aiosqlite.Connection) -> SubscriptionCache:
    """SubscriptionCache over an in-memory database with the schema created."""
    cache = SubscriptionCache(db)
    assert await cache.ensure_schema()
    return cache


@pytest.fixture()
def small_pool() -> tuple[ClientIdentity, ...]:
    """Two-identity pool with distinguishable extra headers."""
    return (
        ClientIdentity(
            label="alpha-client/1.0",
            headers={"user-agent": "alpha-client/1.0", "x-client-hint": "alpha"},
        ),
        ClientIdentity(
            label="beta-client/2.0",
            headers={"user-agent": "beta-client/2.0", "x-client-hint": "beta"},
        ),
    )
