"""Fetch-with-cache-fallback policy.

    fetching ──► fresh      live fetch succeeded; cache written through
             ├─► fallback   every attempt failed; cached content served
             └─► failure    every attempt failed; nothing usable cached

``fetch_with_cache`` always returns a FetchResult and never raises, so a caller
aggregating many subscription URLs can skip one failure without aborting the
batch. The cache write completes before the result is returned.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from subcache.errors import FetchError
from subcache.keys import derive_key
from subcache.models.result import FetchResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from subcache.protocols import CacheProtocol, FetcherProtocol

FALLBACK_WARNING = "remote fetch failed, using cached content"
DEFAULT_MAX_RETRIES = 3


class FetchOrchestrator:
    """Composes key derivation, the rotating fetcher and the durable cache."""

    def __init__(
        self,
        fetcher: FetcherProtocol,
        cache: CacheProtocol,
        *,
        record_failures: bool = True,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._record_failures = record_failures

    async def fetch_with_cache(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        *,
        use_cache: bool = True,
    ) -> FetchResult:
        key = derive_key(url)
        log = structlog.get_logger().bind(url=url, cache_key=key)
        log.info("fetch_started", max_retries=max_retries, use_cache=use_cache)

        try:
            content = await self._fetcher.fetch(url, headers, max_retries)
        except FetchError as exc:
            error_message = exc.message
            log.warning("fetch_failed", error=error_message, attempts=exc.attempts)
        except Exception as exc:
            error_message = str(exc) or type(exc).__name__
            log.error("fetch_unexpected_error", exc_info=True)
        else:
            if use_cache:
                await self._write_through(key, url, content, log)
            return FetchResult(content=content, from_cache=False, success=True)

        if use_cache:
            try:
                fallback = await self._fallback(key, url, log)
            except Exception:
                log.error("cache_read_error", exc_info=True)
                fallback = None
            if fallback is not None:
                return fallback

        return FetchResult(content=None, from_cache=False, success=False, error=error_message)

    async def _write_through(
        self, key: str, url: str, content: str, log: structlog.typing.FilteringBoundLogger
    ) -> None:
        # Persistence problems are logged; the fresh content is returned regardless
        try:
            stored = await self._cache.put(key, url, content)
        except Exception:
            log.error("cache_write_error", exc_info=True)
            return
        if not stored:
            log.warning("cache_write_skipped")

    async def _fallback(
        self, key: str, url: str, log: structlog.typing.FilteringBoundLogger
    ) -> FetchResult | None:
        entry = await self._cache.get(key)
        if entry is None or not entry.content:
            log.info("cache_fallback_miss")
            return None

        if entry.source_url != url:
            log.warning("cache_key_collision", cached_url=entry.source_url)
            return None

        if self._record_failures:
            try:
                await self._cache.record_failure(key)
            except Exception:
                log.error("cache_record_failure_error", exc_info=True)

        log.info(
            "cache_fallback_hit",
            cached_at=entry.updated_at,
            success_count=entry.success_count,
        )
        return FetchResult(
            content=entry.content,
            from_cache=True,
            success=True,
            warning=FALLBACK_WARNING,
        )
