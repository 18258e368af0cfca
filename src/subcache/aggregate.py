"""Batch proxy-list aggregation.

Merges a newline-separated list of subscription URLs and inline proxy lines
into one list. URLs go through the orchestrator; a URL that fails (no live
content and no cached fallback) is logged and skipped.
"""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING
from urllib.parse import unquote

import structlog

if TYPE_CHECKING:
    from collections.abc import Mapping

    from subcache.orchestrator import FetchOrchestrator

log = structlog.get_logger()


def _try_base64(text: str) -> str | None:
    compact = "".join(text.split())
    if not compact:
        return None
    padded = compact + "=" * (-len(compact) % 4)
    # URL-safe alphabet is common in subscription bodies
    altchars = b"-_" if "-" in padded or "_" in padded else None
    try:
        return base64.b64decode(padded, altchars=altchars, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def decode_subscription_lines(text: str, *, unquote_lines: bool = False) -> list[str]:
    """Split a subscription body into proxy lines.

    Bodies that are a single base64 blob are decoded first. Blank lines are
    dropped.
    """
    decoded = _try_base64(text)
    body = decoded if decoded is not None else text
    lines = [line.strip() for line in body.splitlines()]
    if unquote_lines:
        lines = [unquote(line) for line in lines]
    return [line for line in lines if line]


def encode_base64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


async def aggregate_proxy_list(
    config: str,
    orchestrator: FetchOrchestrator,
    *,
    headers: Mapping[str, str] | None = None,
    max_retries: int = 3,
    use_cache: bool = True,
) -> list[str]:
    """Resolve every line of ``config`` into proxy lines, in input order."""
    proxies: list[str] = []
    for raw_line in config.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if not line.startswith(("http://", "https://")):
            proxies.extend(decode_subscription_lines(line))
            continue

        result = await orchestrator.fetch_with_cache(
            line, headers, max_retries, use_cache=use_cache
        )
        if not result.success or result.content is None:
            log.warning("aggregate_source_skipped", url=line, error=result.error)
            continue
        if result.warning:
            log.warning("aggregate_source_degraded", url=line, warning=result.warning)
        proxies.extend(decode_subscription_lines(result.content, unquote_lines=True))

    return proxies
