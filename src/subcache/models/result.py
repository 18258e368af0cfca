from __future__ import annotations

from pydantic import BaseModel


class FetchResult(BaseModel):
    """Terminal outcome of fetch_with_cache.

    Three shapes occur:
      fresh: content set, from_cache False, success True
      fallback: cached content, from_cache True, success True, warning set
      failure: content None, from_cache False, success False, error set
    """

    content: str | None
    from_cache: bool = False
    success: bool
    warning: str | None = None
    error: str | None = None
