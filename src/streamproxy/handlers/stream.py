"""Request handler for the proxy endpoints.

Receives AppState, delegates to the orchestrator, and turns every failure
into a StreamProxyError. No Starlette imports: server.py handles the HTTP
wiring and the response bodies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from streamproxy.errors import ErrorCode, StreamProxyError

if TYPE_CHECKING:
    from streamproxy.models.fetch import ProxyResult, UpstreamVariant
    from streamproxy.state import AppState


async def handle(url: str, variant: UpstreamVariant, state: AppState) -> ProxyResult:
    """Handle a proxy request for ``url`` through ``variant``."""
    log = structlog.get_logger().bind(handler="proxy", variant=variant, url=url)
    log.info("handler_called")

    if not url:
        raise StreamProxyError(code=ErrorCode.INVALID_INPUT, message="Stream URL is required")

    try:
        return await state.orchestrator.handle(url, variant)
    except StreamProxyError as exc:
        if exc.code is ErrorCode.INVALID_INPUT:
            raise
        log.warning("proxy_error", code=exc.code, message=exc.message)
        raise StreamProxyError(
            code=exc.code,
            message=f"Failed to proxy stream: {exc.message}",
            upstream_status=exc.upstream_status,
        ) from exc
    except Exception as exc:
        log.error("proxy_unexpected_error", exc_info=True)
        raise StreamProxyError(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Failed to proxy stream: {exc}",
        ) from exc
