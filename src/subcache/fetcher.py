"""HTTP subscription fetcher with client-identity rotation.

All network I/O for subscription downloads goes through a single
IdentityRotatingFetcher shared across requests. The fetcher receives an
httpx.AsyncClient via constructor injection; the lifespan owns the client
lifecycle.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import httpx
import structlog

from subcache.errors import AttemptError, FetchError, HTTPError, TransportError
from subcache.identities import DEFAULT_IDENTITIES, USER_AGENT_HEADER, ClientIdentity

if TYPE_CHECKING:
    from subcache.config import FetcherSettings

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    timeout = settings.timeout_seconds if settings is not None else 30.0
    max_connections = settings.max_connections if settings is not None else 20
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections // 2,
        ),
    )


def build_attempt_headers(
    base_headers: Mapping[str, str] | None,
    identity: ClientIdentity,
    attempt: int,
) -> httpx.Headers:
    """Headers for one attempt.

    The identity's user agent is applied only when the caller did not supply
    one. The identity's remaining headers are merged on the first attempt only.
    """
    headers = httpx.Headers(dict(base_headers or {}))
    if USER_AGENT_HEADER not in headers:
        headers[USER_AGENT_HEADER] = identity.label
    if attempt == 1:
        for name, value in identity.extra_headers().items():
            headers[name] = value
    return headers


class IdentityRotatingFetcher:
    """Sequential GET retries, one pool identity per attempt."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        identities: Sequence[ClientIdentity] = DEFAULT_IDENTITIES,
    ) -> None:
        if not identities:
            raise ValueError("identity pool must not be empty")
        self._client = client
        self._identities = tuple(identities)

    @property
    def identities(self) -> tuple[ClientIdentity, ...]:
        return self._identities

    async def fetch(
        self,
        url: str,
        base_headers: Mapping[str, str] | None = None,
        max_attempts: int = 3,
    ) -> str:
        """Fetch ``url``, retrying up to ``max_attempts`` times.

        Returns the response body of the first 2xx response. Raises FetchError
        with the last failure once every attempt has failed.
        """
        attempts = max(1, max_attempts)
        last_error: AttemptError | None = None

        for attempt in range(1, attempts + 1):
            identity = self._identities[(attempt - 1) % len(self._identities)]
            headers = build_attempt_headers(base_headers, identity, attempt)
            try:
                return await self._attempt(url, headers)
            except AttemptError as exc:
                last_error = exc
                log.warning(
                    "fetch_attempt_failed",
                    url=url,
                    attempt=attempt,
                    max_attempts=attempts,
                    identity=identity.label,
                    error=str(exc),
                )

        message = str(last_error) if last_error is not None else f"Failed to fetch {url}"
        raise FetchError(message, cause=last_error, attempts=attempts)

    async def _attempt(self, url: str, headers: httpx.Headers) -> str:
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error fetching {url}: {exc}") from exc

        if not response.is_success:
            raise HTTPError(response.status_code, response.reason_phrase)

        log.info(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.text),
        )
        return response.text
