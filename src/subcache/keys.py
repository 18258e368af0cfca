"""Cache key derivation.

Keys are the absolute value of a signed 32-bit ``acc * 31 + byte`` rolling
hash over the UTF-8 bytes of the URL, rendered as lowercase hex. The width is
kept at 32 bits so keys match rows written by existing administrative
tooling; collisions are detected by comparing the stored ``url`` column at
fallback time (see ``orchestrator.py``).
"""

from __future__ import annotations

INVALID_URL_KEY = "invalid-url"

_MASK = 0xFFFFFFFF
_SIGN_BIT = 0x80000000


def _to_int32(value: int) -> int:
    value &= _MASK
    return value - (1 << 32) if value & _SIGN_BIT else value


def derive_key(url: object) -> str:
    """Map a URL to a short, deterministic cache key. Never raises."""
    if not isinstance(url, str) or not url:
        return INVALID_URL_KEY

    acc = 0
    for byte in url.encode("utf-8", errors="surrogatepass"):
        acc = _to_int32((acc << 5) - acc + byte)
    return format(abs(acc), "x")
