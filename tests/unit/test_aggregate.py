"""Unit tests for subcache.aggregate."""

from __future__ import annotations

import base64

import httpx
import respx

from subcache.aggregate import aggregate_proxy_list, decode_subscription_lines, encode_base64
from subcache.cache import SubscriptionCache
from subcache.fetcher import IdentityRotatingFetcher
from subcache.keys import derive_key
from subcache.orchestrator import FetchOrchestrator

VMESS = "vmess://eyJhZGQiOiJleGFtcGxlLmNvbSJ9"
TROJAN = "trojan://secret@example.com:443#node%201"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


class TestDecodeSubscriptionLines:
    def test_plain_lines(self) -> None:
        assert decode_subscription_lines(f"{VMESS}\n\n{TROJAN}\n") == [VMESS, TROJAN]

    def test_base64_body(self) -> None:
        body = _b64(f"{VMESS}\n{TROJAN}")
        assert decode_subscription_lines(body) == [VMESS, TROJAN]

    def test_base64_body_with_line_wrapping(self) -> None:
        encoded = _b64(f"{VMESS}\n{TROJAN}")
        wrapped = "\n".join(encoded[i : i + 20] for i in range(0, len(encoded), 20))
        assert decode_subscription_lines(wrapped) == [VMESS, TROJAN]

    def test_unpadded_base64(self) -> None:
        encoded = _b64(TROJAN).rstrip("=")
        assert decode_subscription_lines(encoded) == [TROJAN]

    def test_unquote(self) -> None:
        assert decode_subscription_lines(TROJAN, unquote_lines=True) == [
            "trojan://secret@example.com:443#node 1"
        ]

    def test_empty(self) -> None:
        assert decode_subscription_lines("  \n ") == []


class TestEncodeBase64:
    def test_utf8(self) -> None:
        assert base64.b64decode(encode_base64("节点")).decode() == "节点"


class TestAggregateProxyList:
    @respx.mock
    async def test_mixed_sources_in_order(self, cache: SubscriptionCache) -> None:
        respx.get("https://a.test/sub").mock(
            return_value=httpx.Response(200, text=_b64(VMESS))
        )
        async with httpx.AsyncClient() as client:
            orchestrator = FetchOrchestrator(IdentityRotatingFetcher(client), cache)
            proxies = await aggregate_proxy_list(
                f"https://a.test/sub\n\n  {TROJAN}  \n", orchestrator
            )
        assert proxies == [VMESS, TROJAN]

    @respx.mock
    async def test_failed_source_is_skipped(self, cache: SubscriptionCache) -> None:
        respx.get("https://down.test/sub").mock(return_value=httpx.Response(500))
        async with httpx.AsyncClient() as client:
            orchestrator = FetchOrchestrator(IdentityRotatingFetcher(client), cache)
            proxies = await aggregate_proxy_list(
                f"https://down.test/sub\n{TROJAN}", orchestrator, max_retries=1
            )
        assert proxies == [TROJAN]

    @respx.mock
    async def test_failed_source_uses_cached_copy(self, cache: SubscriptionCache) -> None:
        url = "https://down.test/sub"
        await cache.put(derive_key(url), url, VMESS)
        respx.get(url).mock(return_value=httpx.Response(500))
        async with httpx.AsyncClient() as client:
            orchestrator = FetchOrchestrator(IdentityRotatingFetcher(client), cache)
            proxies = await aggregate_proxy_list(url, orchestrator, max_retries=1)
        assert proxies == [VMESS]
