"""HTTP service entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the Starlette lifespan context manager
- Register routes
- Start uvicorn
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from subcache import __version__
from subcache.aggregate import aggregate_proxy_list, encode_base64
from subcache.cache import SubscriptionCache
from subcache.config import Settings
from subcache.errors import ErrorCode, SubcacheError
from subcache.fetcher import IdentityRotatingFetcher, build_http_client
from subcache.logs import setup_logging
from subcache.orchestrator import FetchOrchestrator
from subcache.state import AppState
from subcache.transport import AdminAuthMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx
    from starlette.requests import Request

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def _open_store(settings: Settings) -> aiosqlite.Connection | None:
    """Open the SQLite store, or return None when caching is disabled or unavailable."""
    if not settings.cache.enabled:
        log.warning("cache_disabled")
        return None
    db_path = Path(settings.cache.db_path).expanduser()
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return await aiosqlite.connect(str(db_path))
    except (OSError, aiosqlite.Error):
        log.error("cache_open_failed", db_path=str(db_path), exc_info=True)
        return None


def _build_lifespan(settings: Settings, prebuilt: AppState | None):
    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        if prebuilt is not None:
            app.state.subcache = prebuilt
            yield
            return

        log.info("server_starting", version=__version__)

        db = await _open_store(settings)
        http_client: httpx.AsyncClient | None = None
        try:
            cache = SubscriptionCache(db)
            await cache.ensure_schema()

            http_client = build_http_client(settings.fetcher)
            fetcher = IdentityRotatingFetcher(http_client)
            orchestrator = FetchOrchestrator(
                fetcher, cache, record_failures=settings.cache.record_failures
            )
            app.state.subcache = AppState(
                settings=settings,
                cache=cache,
                orchestrator=orchestrator,
                http_client=http_client,
            )

            log.info(
                "server_started",
                version=__version__,
                host=settings.server.host,
                port=settings.server.port,
                store_configured=cache.configured,
            )
            yield
        finally:
            if http_client is not None:
                await http_client.aclose()
            if db is not None:
                await db.close()
            log.info("server_stopping")

    return lifespan


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def _state(request: Request) -> AppState:
    return request.app.state.subcache


def _cache_enabled(request: Request) -> bool:
    return request.query_params.get("cache", "true").lower() != "false"


def _user_agent_headers(request: Request, state: AppState) -> dict[str, str]:
    user_agent = request.query_params.get("ua") or state.settings.fetcher.default_user_agent
    return {"User-Agent": user_agent}


def _max_retries(request: Request, state: AppState) -> int:
    raw = request.query_params.get("retries")
    if raw is None:
        return state.settings.fetcher.max_retries
    try:
        value = int(raw)
    except ValueError as exc:
        raise SubcacheError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid retries value: {raw!r}",
            suggestion="Pass a positive integer, e.g. retries=3.",
        ) from exc
    if not 1 <= value <= 10:
        raise SubcacheError(
            code=ErrorCode.INVALID_INPUT,
            message=f"retries must be between 1 and 10, got {value}",
            suggestion="Pass a positive integer, e.g. retries=3.",
        )
    return value


def _error_response(error: SubcacheError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.status_code)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


async def healthz(request: Request) -> Response:
    return JSONResponse({"status": "ok", "version": __version__})


async def fetch_subscription(request: Request) -> Response:
    """Fetch one subscription URL with cache fallback and return the FetchResult."""
    state = _state(request)
    try:
        url = request.query_params.get("url", "").strip()
        if not url.startswith(("http://", "https://")):
            raise SubcacheError(
                code=ErrorCode.INVALID_INPUT,
                message="Missing or invalid url parameter",
                suggestion="Pass an http(s) subscription URL as ?url=...",
            )
        max_retries = _max_retries(request, state)
    except SubcacheError as exc:
        log.warning("request_rejected", path=request.url.path, code=exc.code, message=exc.message)
        return _error_response(exc)

    result = await state.orchestrator.fetch_with_cache(
        url,
        _user_agent_headers(request, state),
        max_retries,
        use_cache=_cache_enabled(request),
    )
    return JSONResponse(result.model_dump(mode="json"), status_code=200 if result.success else 502)


async def xray(request: Request) -> Response:
    """Aggregate subscriptions and inline proxies into one base64 proxy list."""
    state = _state(request)
    try:
        config = request.query_params.get("config")
        if not config:
            raise SubcacheError(
                code=ErrorCode.INVALID_INPUT,
                message="Missing config parameter",
                suggestion="Pass newline-separated subscription URLs or proxy lines as ?config=...",
            )
        max_retries = _max_retries(request, state)

        proxies = await aggregate_proxy_list(
            config,
            state.orchestrator,
            headers=_user_agent_headers(request, state),
            max_retries=max_retries,
            use_cache=_cache_enabled(request),
        )
        if not proxies:
            raise SubcacheError(
                code=ErrorCode.EMPTY_AGGREGATE,
                message="No proxies could be resolved from config",
                suggestion="Check that the subscription URLs are reachable or cached.",
                recoverable=True,
            )
    except SubcacheError as exc:
        log.warning("request_rejected", path=request.url.path, code=exc.code, message=exc.message)
        return _error_response(exc)

    return Response(
        encode_base64("\n".join(proxies)),
        media_type="text/plain; charset=utf-8",
    )


async def cache_stats(request: Request) -> Response:
    cache = _state(request).cache
    stats = await cache.stats()
    return JSONResponse({"store_configured": cache.configured, **stats.model_dump()})


async def cache_clear(request: Request) -> Response:
    success = await _state(request).cache.clear_all()
    return JSONResponse(
        {
            "success": success,
            "message": "All cache cleared" if success else "Failed to clear cache",
        }
    )


async def cache_delete(request: Request) -> Response:
    key = request.path_params["key"]
    success = await _state(request).cache.clear(key)
    return JSONResponse({"success": success, "key": key})


def create_app(settings: Settings | None = None, state: AppState | None = None) -> Starlette:
    """Build the ASGI application.

    ``state`` short-circuits resource creation in the lifespan; used by tests.
    """
    settings = settings or (state.settings if state is not None else Settings())
    app = Starlette(
        routes=[
            Route("/healthz", healthz, methods=["GET"]),
            Route("/fetch", fetch_subscription, methods=["GET"]),
            Route("/xray", xray, methods=["GET"]),
            Route("/cache-stats", cache_stats, methods=["GET"]),
            Route("/cache-clear", cache_clear, methods=["POST"]),
            Route("/cache/{key}", cache_delete, methods=["DELETE"]),
        ],
        middleware=[Middleware(AdminAuthMiddleware, admin_key=settings.server.admin_key)],
        lifespan=_build_lifespan(settings, state),
    )
    if state is not None:
        # ASGI test transports do not run the lifespan
        app.state.subcache = state
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    setup_logging(settings)

    if not settings.server.admin_key:
        log.warning("admin_auth_disabled")

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
