"""Application state container.

AppState is created once at startup (inside the Starlette lifespan context
manager) and attached to ``app.state.subcache``; request handlers read it from
there. Nothing else in the process holds shared mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from subcache.cache import SubscriptionCache
    from subcache.config import Settings
    from subcache.orchestrator import FetchOrchestrator


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every request handler."""

    settings: Settings
    cache: SubscriptionCache
    orchestrator: FetchOrchestrator
    http_client: httpx.AsyncClient | None = None
