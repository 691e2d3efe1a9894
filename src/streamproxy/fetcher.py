"""Upstream HTTP fetcher.

All upstream I/O goes through a single Fetcher instance shared across
requests. The Fetcher receives an httpx.AsyncClient via constructor
injection; the lifespan owns the client lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from streamproxy.errors import ErrorCode, StreamProxyError

if TYPE_CHECKING:
    from streamproxy.config import UpstreamSettings
    from streamproxy.models.fetch import FetchRequest

log = structlog.get_logger()


def build_http_client(settings: UpstreamSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    timeout = settings.timeout_seconds if settings is not None else 30.0
    max_connections = settings.max_connections if settings is not None else 100
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections // 2,
        ),
    )


class Fetcher:
    """Opens upstream responses in streaming mode."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def open(self, request: FetchRequest) -> httpx.Response:
        """Send the request and return the response with its body unread.

        The caller owns the returned response and must ``aclose()`` it.
        Raises StreamProxyError(UPSTREAM_ERROR) on network errors and non-2xx
        responses; failed requests are never retried.
        """
        log.info("upstream_fetch", url=request.url, variant=request.variant)
        try:
            response = await self._client.send(
                self._client.build_request("GET", request.url, headers=request.headers),
                stream=True,
            )
        except httpx.HTTPError as exc:
            raise StreamProxyError(
                code=ErrorCode.UPSTREAM_ERROR,
                message=f"Network error fetching {request.url}: {exc}",
            ) from exc

        if not response.is_success:
            await response.aclose()
            log.warning(
                "upstream_error_status",
                url=request.url,
                status_code=response.status_code,
            )
            raise StreamProxyError(
                code=ErrorCode.UPSTREAM_ERROR,
                message=f"Failed to fetch: {response.status_code} {response.reason_phrase}",
                upstream_status=response.status_code,
            )

        return response
