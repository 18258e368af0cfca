"""Protocol interfaces for swappable components.

The orchestrator and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other backends (e.g. a remote key/value store) to be swapped without
  changing the fallback policy
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from subcache.models.cache import CacheEntry, CacheStats


class CacheProtocol(Protocol):
    """Interface for the durable subscription cache."""

    async def get(self, key: str) -> CacheEntry | None: ...

    async def put(self, key: str, url: str, content: str) -> bool: ...

    async def record_failure(self, key: str) -> bool: ...

    async def clear(self, key: str) -> bool: ...

    async def clear_all(self) -> bool: ...

    async def stats(self) -> CacheStats: ...


class FetcherProtocol(Protocol):
    """Interface for the retrying subscription fetcher."""

    async def fetch(
        self,
        url: str,
        base_headers: Mapping[str, str] | None = None,
        max_attempts: int = 3,
    ) -> str: ...
