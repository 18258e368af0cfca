from __future__ import annotations

from subcache.models.cache import CacheEntry, CacheListing, CacheStats
from subcache.models.result import FetchResult

__all__ = [
    # cache
    "CacheEntry",
    "CacheListing",
    "CacheStats",
    # orchestrator
    "FetchResult",
]
