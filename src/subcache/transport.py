"""ASGI security middleware for the cache administration endpoints."""

from __future__ import annotations

import json
import secrets
from typing import TYPE_CHECKING

from starlette.datastructures import Headers
from starlette.responses import Response

from subcache.errors import ErrorCode, SubcacheError

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

ADMIN_PATH_PREFIXES: tuple[str, ...] = ("/cache-", "/cache/")


def is_admin_path(path: str) -> bool:
    return path.startswith(ADMIN_PATH_PREFIXES)


class AdminAuthMiddleware:
    """Pure ASGI middleware guarding administrative paths.

    When ``admin_key`` is set, requests to ``/cache-*`` and ``/cache/...``
    must carry ``Authorization: Bearer <admin_key>``. Subscription endpoints
    are never guarded: subscription clients cannot send custom headers.
    """

    def __init__(self, app: ASGIApp, *, admin_key: str | None = None) -> None:
        self.app = app
        self.admin_key = admin_key or None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.admin_key and is_admin_path(scope["path"]):
            headers = Headers(scope=scope)
            auth_header = headers.get("authorization", "")
            supplied = auth_header[7:] if auth_header.startswith("Bearer ") else ""
            if not supplied or not secrets.compare_digest(supplied, self.admin_key):
                error = SubcacheError(
                    code=ErrorCode.UNAUTHORIZED,
                    message="Missing or invalid admin key",
                    suggestion="Send 'Authorization: Bearer <admin_key>'.",
                    status_code=401,
                )
                await Response(
                    json.dumps(error.to_dict()),
                    status_code=error.status_code,
                    media_type="application/json",
                )(scope, receive, send)
                return

        await self.app(scope, receive, send)
