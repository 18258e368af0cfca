from __future__ import annotations

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """Last successfully fetched content for one subscription URL."""

    key: str  # derive_key(source_url), primary key
    source_url: str
    content: str  # Body of the most recent successful fetch
    created_at: int  # Epoch milliseconds
    updated_at: int  # Epoch milliseconds, bumped on success and on failure
    success_count: int = Field(default=1, ge=0)
    fail_count: int = Field(default=0, ge=0)


class CacheListing(BaseModel):
    """Row summary for administrative listing (content omitted)."""

    key: str
    source_url: str
    size: int  # Content length in characters
    success_count: int
    fail_count: int
    created_at: int


class CacheStats(BaseModel):
    """Aggregate counters across all cached entries."""

    total_entries: int = 0
    total_success: int = 0
    total_fail: int = 0
    total_bytes: int = 0
