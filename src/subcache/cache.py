"""SQLite subscription cache backing the fetch fallback.

Entries never expire: each row holds the body of the most recent successful
fetch for one URL, plus success/failure counters. A failed fetch only bumps
``fail_count``; it never creates a row or touches ``content``.

All operations degrade instead of raising:
  - ``db is None`` is the "store not configured" state. Reads return ``None``
    (or empty stats), writes return ``False``.
  - ``aiosqlite.Error`` and the ``ValueError`` aiosqlite raises on a closed
    connection are caught and logged with ``exc_info=True``; the operation
    returns the same safe value.
Infrastructure errors never cross the SubscriptionCache class boundary, so a
storage outage disables persistence and fallback without failing a fetch.
"""

from __future__ import annotations

import time

import aiosqlite
import structlog

from subcache.keys import derive_key
from subcache.models.cache import CacheEntry, CacheListing, CacheStats

log = structlog.get_logger()

# aiosqlite raises ValueError("Connection closed") once the connection is gone
_STORE_ERRORS = (aiosqlite.Error, ValueError)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS subscription_cache (
    cache_key     TEXT PRIMARY KEY,
    url           TEXT NOT NULL,
    content       TEXT NOT NULL,
    created_at    INTEGER NOT NULL,
    updated_at    INTEGER NOT NULL,
    success_count INTEGER DEFAULT 1,
    fail_count    INTEGER DEFAULT 0
)
"""

_CREATE_CREATED_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_created_at ON subscription_cache(created_at DESC)"
)

_SELECT_ENTRY = (
    "SELECT cache_key, url, content, created_at, updated_at, success_count, fail_count "
    "FROM subscription_cache WHERE cache_key = ?"
)

_UPSERT_SUCCESS = """
INSERT INTO subscription_cache
    (cache_key, url, content, created_at, updated_at, success_count, fail_count)
VALUES (?, ?, ?, ?, ?, 1, 0)
ON CONFLICT(cache_key) DO UPDATE SET
    url = excluded.url,
    content = excluded.content,
    updated_at = excluded.updated_at,
    success_count = success_count + 1
"""

_INSERT_RESET = """
INSERT OR REPLACE INTO subscription_cache
    (cache_key, url, content, created_at, updated_at, success_count, fail_count)
VALUES (?, ?, ?, ?, ?, 1, 0)
"""


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


class SubscriptionCache:
    """SQLite-backed subscription cache implementing CacheProtocol."""

    def __init__(self, db: aiosqlite.Connection | None) -> None:
        self._db = db

    @property
    def configured(self) -> bool:
        return self._db is not None

    def _unavailable(self, operation: str) -> None:
        log.debug("store_unavailable", operation=operation)

    async def ensure_schema(self) -> bool:
        """Create table and index if missing. Idempotent; called once at startup."""
        if self._db is None:
            self._unavailable("ensure_schema")
            return False
        try:
            await self._db.execute("PRAGMA journal_mode = WAL")
            await self._db.execute(_CREATE_TABLE)
            await self._db.execute(_CREATE_CREATED_INDEX)
            await self._db.commit()
        except _STORE_ERRORS:
            log.error("cache_schema_error", exc_info=True)
            return False
        log.info("cache_schema_ready")
        return True

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CacheEntry | None:
        """Read an entry. Returns ``None`` on miss, read failure or no store."""
        if self._db is None:
            self._unavailable("get")
            return None
        try:
            cursor = await self._db.execute(_SELECT_ENTRY, (key,))
            row = await cursor.fetchone()
        except _STORE_ERRORS:
            log.warning("cache_read_error", key=key, exc_info=True)
            return None
        if row is None:
            return None
        return CacheEntry(
            key=row[0],
            source_url=row[1],
            content=row[2],
            created_at=row[3],
            updated_at=row[4],
            success_count=row[5] or 0,
            fail_count=row[6] or 0,
        )

    async def put(self, key: str, url: str, content: str) -> bool:
        """Upsert after a successful fetch.

        New rows start at success_count=1, fail_count=0. Existing rows get new
        content and updated_at, success_count + 1, fail_count preserved.
        """
        if self._db is None:
            self._unavailable("put")
            return False
        try:
            now = now_ms()
            await self._db.execute(_UPSERT_SUCCESS, (key, url, content, now, now))
            await self._db.commit()
        except _STORE_ERRORS:
            log.warning("cache_write_error", key=key, exc_info=True)
            return False
        log.info("cache_stored", key=key, content_length=len(content))
        return True

    async def record_failure(self, key: str) -> bool:
        """Bump fail_count on an existing row. Returns False if the key is absent."""
        if self._db is None:
            self._unavailable("record_failure")
            return False
        try:
            cursor = await self._db.execute(
                "UPDATE subscription_cache "
                "SET fail_count = fail_count + 1, updated_at = ? WHERE cache_key = ?",
                (now_ms(), key),
            )
            await self._db.commit()
        except _STORE_ERRORS:
            log.warning("cache_record_failure_error", key=key, exc_info=True)
            return False
        return cursor.rowcount > 0

    async def clear(self, key: str) -> bool:
        if self._db is None:
            self._unavailable("clear")
            return False
        try:
            await self._db.execute("DELETE FROM subscription_cache WHERE cache_key = ?", (key,))
            await self._db.commit()
        except _STORE_ERRORS:
            log.warning("cache_clear_error", key=key, exc_info=True)
            return False
        log.info("cache_cleared", key=key)
        return True

    async def clear_all(self) -> bool:
        if self._db is None:
            self._unavailable("clear_all")
            return False
        try:
            cursor = await self._db.execute("DELETE FROM subscription_cache")
            await self._db.commit()
        except _STORE_ERRORS:
            log.warning("cache_clear_all_error", exc_info=True)
            return False
        log.info("cache_cleared_all", deleted=cursor.rowcount)
        return True

    async def stats(self) -> CacheStats:
        """Aggregate counters. Empty stats when the store is missing or unreadable."""
        if self._db is None:
            self._unavailable("stats")
            return CacheStats()
        try:
            cursor = await self._db.execute(
                "SELECT COUNT(*), "
                "COALESCE(SUM(success_count), 0), "
                "COALESCE(SUM(fail_count), 0), "
                "COALESCE(SUM(LENGTH(CAST(content AS BLOB))), 0) "
                "FROM subscription_cache"
            )
            row = await cursor.fetchone()
        except _STORE_ERRORS:
            log.warning("cache_stats_error", exc_info=True)
            return CacheStats()
        if row is None:
            return CacheStats()
        return CacheStats(
            total_entries=row[0],
            total_success=row[1],
            total_fail=row[2],
            total_bytes=row[3],
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def insert(self, url: str, content: str) -> bool:
        """Seed an entry by hand, resetting its counters to 1/0."""
        if self._db is None:
            self._unavailable("insert")
            return False
        key = derive_key(url)
        try:
            now = now_ms()
            await self._db.execute(_INSERT_RESET, (key, url, content, now, now))
            await self._db.commit()
        except _STORE_ERRORS:
            log.warning("cache_write_error", key=key, exc_info=True)
            return False
        log.info("cache_inserted", key=key, content_length=len(content))
        return True

    async def fix(self, url: str, content: str) -> bool:
        """Delete then re-insert an entry in one transaction."""
        if self._db is None:
            self._unavailable("fix")
            return False
        key = derive_key(url)
        try:
            now = now_ms()
            await self._db.execute("DELETE FROM subscription_cache WHERE cache_key = ?", (key,))
            await self._db.execute(_INSERT_RESET, (key, url, content, now, now))
            await self._db.commit()
        except _STORE_ERRORS:
            log.warning("cache_fix_error", key=key, exc_info=True)
            await self._rollback()
            return False
        log.info("cache_fixed", key=key, content_length=len(content))
        return True

    async def list_entries(self, limit: int = 100) -> list[CacheListing]:
        """Most recently created entries first."""
        if self._db is None:
            self._unavailable("list_entries")
            return []
        try:
            cursor = await self._db.execute(
                "SELECT cache_key, url, LENGTH(CAST(content AS BLOB)), "
                "success_count, fail_count, created_at "
                "FROM subscription_cache ORDER BY created_at DESC LIMIT ?",
                (limit,),
            )
            rows = await cursor.fetchall()
        except _STORE_ERRORS:
            log.warning("cache_list_error", exc_info=True)
            return []
        return [
            CacheListing(
                key=row[0],
                source_url=row[1],
                size=row[2],
                success_count=row[3] or 0,
                fail_count=row[4] or 0,
                created_at=row[5],
            )
            for row in rows
        ]

    async def _rollback(self) -> None:
        if self._db is None:
            return
        try:
            await self._db.rollback()
        except _STORE_ERRORS:
            log.warning("cache_rollback_error", exc_info=True)
