"""Simulated client identities rotated across fetch attempts.

Subscription origins frequently gate responses on the requesting client. The
pool is ordered: attempt ``i`` uses ``pool[(i - 1) % len(pool)]``. The first
entry is a full desktop-client header set; the rest are bare user agents of
common proxy clients, followed by browser header sets as a last resort.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

USER_AGENT_HEADER = "user-agent"


class ClientIdentity(BaseModel):
    """A named header set presented to the origin on one attempt."""

    model_config = ConfigDict(frozen=True)

    label: str  # Value used for the User-Agent header
    headers: dict[str, str] = {}  # Lowercase header name -> value

    def extra_headers(self) -> dict[str, str]:
        """Declared headers other than the user agent."""
        return {k: v for k, v in self.headers.items() if k.lower() != USER_AGENT_HEADER}


def _ua_only(label: str) -> ClientIdentity:
    return ClientIdentity(label=label, headers={USER_AGENT_HEADER: label})


_CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "Chrome/120.0.0.0 Safari/537.36"
)
_SAFARI_MACOS = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "Version/17.2 Safari/605.1.15"
)

DEFAULT_IDENTITIES: tuple[ClientIdentity, ...] = (
    ClientIdentity(
        label="FlClash/v0.8.74 clash-verge Platform/windows",
        headers={
            "accept-encoding": "gzip, br",
            "connection": "Keep-Alive",
            "user-agent": "FlClash/v0.8.74 clash-verge Platform/windows",
            "x-forwarded-proto": "https",
            "x-real-ip": "47.91.20.160",
        },
    ),
    _ua_only("curl/7.88.1"),
    _ua_only("ClashforWindows/0.20.31"),
    _ua_only("clash-verge/v1.7.4"),
    _ua_only("Surge/5.2.0"),
    _ua_only("Quantumult%20X/1.2.3"),
    _ua_only("ShadowsocksX-NG/1.8.2"),
    ClientIdentity(
        label=_CHROME_WINDOWS,
        headers={
            "user-agent": _CHROME_WINDOWS,
            "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "accept-language": "en-US,en;q=0.5",
        },
    ),
    ClientIdentity(
        label=_SAFARI_MACOS,
        headers={
            "user-agent": _SAFARI_MACOS,
            "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        },
    ),
)
