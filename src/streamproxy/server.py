"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState in the Starlette lifespan context manager
- Register routes and CORS
- Start uvicorn
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

import streamproxy.handlers.admin as t_admin
import streamproxy.handlers.stream as t_stream
from streamproxy import __version__
from streamproxy.cache import SegmentCache
from streamproxy.config import Settings
from streamproxy.errors import StreamProxyError
from streamproxy.fetcher import Fetcher, build_http_client
from streamproxy.models.fetch import UpstreamVariant
from streamproxy.proxy import ProxyOrchestrator
from streamproxy.schedulers import run_cache_cleanup_scheduler
from streamproxy.state import AppState
from streamproxy.transform import repair_captured_url

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx
    from starlette.requests import Request
    from starlette.types import ASGIApp, Receive, Scope, Send

    from streamproxy.models.fetch import ProxyResult

log = structlog.get_logger()

CORS_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"]


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# State wiring
# ---------------------------------------------------------------------------


def build_state(settings: Settings, http_client: httpx.AsyncClient) -> AppState:
    """Wire cache, fetcher and orchestrator around a shared HTTP client."""
    cache = SegmentCache(
        ttl_seconds=settings.cache.ttl_seconds,
        admin_token=settings.admin.token,
        max_entries=settings.cache.max_entries,
    )
    orchestrator = ProxyOrchestrator(cache, Fetcher(http_client), settings)
    return AppState(
        settings=settings,
        cache=cache,
        orchestrator=orchestrator,
        http_client=http_client,
    )


def _log_endpoints(settings: Settings) -> None:
    log.info(
        "server_started",
        version=__version__,
        url=f"http://{settings.server.host}:{settings.server.port}",
        endpoints=t_admin.ENDPOINTS,
        cache_ttl_seconds=settings.cache.ttl_seconds,
        cache_policy="segments, images and pages cached; manifests never cached",
        cors="all origins",
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def _app_state(request: Request) -> AppState:
    return request.app.state.proxy


def _error_response(exc: StreamProxyError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def _proxy_response(result: ProxyResult) -> Response:
    # Pass the upstream content type through untouched (no charset suffix).
    headers = {"content-type": result.content_type} if result.content_type else None
    if result.stream is not None:
        return StreamingResponse(result.stream, headers=headers)
    return Response(result.body, headers=headers)


async def _proxy(request: Request, variant: UpstreamVariant) -> Response:
    captured = request.path_params.get("url", "")
    url = repair_captured_url(captured, request.url.query) if captured else ""
    try:
        result = await t_stream.handle(url, variant, _app_state(request))
    except StreamProxyError as exc:
        return _error_response(exc)
    return _proxy_response(result)


async def proxy_stream(request: Request) -> Response:
    return await _proxy(request, UpstreamVariant.PASSTHROUGH)


async def viper_proxy(request: Request) -> Response:
    return await _proxy(request, UpstreamVariant.HOST_REWRITE)


async def index(request: Request) -> Response:
    return JSONResponse(t_admin.service_info())


async def status(request: Request) -> Response:
    return JSONResponse(t_admin.status(_app_state(request)))


async def clear_cache(request: Request) -> Response:
    try:
        body = await request.json()
    except ValueError:
        body = None
    try:
        return JSONResponse(t_admin.clear_cache(body, _app_state(request)))
    except StreamProxyError as exc:
        return _error_response(exc)


ROUTES = [
    Route("/", index, methods=["GET"]),
    Route("/status", status, methods=["GET"]),
    Route("/clear-cache", clear_cache, methods=["POST"]),
    Route("/proxy-stream/{url:path}", proxy_stream, methods=["GET"]),
    Route("/viper-proxy/{url:path}", viper_proxy, methods=["GET"]),
]


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class OptionsMiddleware:
    """Pure ASGI middleware answering every OPTIONS request with an empty 200.

    CORSMiddleware only short-circuits real preflights (those carrying
    ``Access-Control-Request-Method``); any other OPTIONS request would reach
    the router and get a 405. Installed inside CORSMiddleware so the CORS
    headers are still added to the response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            await Response(status_code=200)(scope, receive, send)
            return
        await self.app(scope, receive, send)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None, state: AppState | None = None) -> Starlette:
    """Build the ASGI app.

    With ``state`` given, the app uses it as is and the lifespan owns nothing;
    otherwise the lifespan creates the HTTP client, cache and sweeper and tears
    them down at shutdown.
    """
    if settings is None:
        settings = state.settings if state is not None else Settings()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        if state is not None:
            yield
            return

        http_client = build_http_client(settings.upstream)
        app_state = build_state(settings, http_client)
        app.state.proxy = app_state
        cleanup_task = asyncio.create_task(run_cache_cleanup_scheduler(app_state))
        _log_endpoints(settings)

        try:
            yield
        finally:
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task
            await http_client.aclose()
            log.info("server_stopping")

    app = Starlette(
        routes=ROUTES,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=CORS_ALLOW_METHODS,
                allow_headers=CORS_ALLOW_HEADERS,
            ),
            Middleware(OptionsMiddleware),
        ],
        lifespan=lifespan,
    )
    if state is not None:
        app.state.proxy = state
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    log.info("server_starting", version=__version__)

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
