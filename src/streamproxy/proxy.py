"""Proxy fetch orchestration.

For each request the orchestrator classifies the target by file extension
and takes exactly one branch:

* manifest (.m3u8): fetch, rewrite, return text. Never cached.
* cacheable binary (.ts/.jpg/.html): serve from the cache by fetch URL, or
  fetch the whole body, cache it and return it.
* anything else: hand the upstream body back as an async byte stream, without
  buffering or caching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import httpx
import structlog

from streamproxy.errors import ErrorCode, StreamProxyError
from streamproxy.models.fetch import (
    ContentCategory,
    ProxyResult,
    RewriteContext,
    RewriteMode,
)
from streamproxy.rewriter import rewrite_direct, rewrite_with_context
from streamproxy.transform import build_fetch_request

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from streamproxy.config import Settings
    from streamproxy.models.fetch import UpstreamVariant
    from streamproxy.protocols import CacheProtocol, FetcherProtocol

log = structlog.get_logger()

MANIFEST_EXTENSION = ".m3u8"
CACHEABLE_EXTENSIONS = (".ts", ".jpg", ".html")
STREAM_CHUNK_SIZE = 64 * 1024


def classify(url: str) -> ContentCategory:
    """Classify a target URL by the extension of its path."""
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url
    if path.endswith(MANIFEST_EXTENSION):
        return ContentCategory.MANIFEST
    if path.endswith(CACHEABLE_EXTENSIONS):
        return ContentCategory.CACHEABLE_BINARY
    return ContentCategory.OTHER


async def _iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
    # Headers are already on the wire by the time this runs, so an upstream
    # failure can only end the body early.
    try:
        async for chunk in response.aiter_bytes(chunk_size=STREAM_CHUNK_SIZE):
            yield chunk
    except httpx.HTTPError:
        log.warning("stream_passthrough_interrupted", url=str(response.url), exc_info=True)
    finally:
        await response.aclose()


class ProxyOrchestrator:
    def __init__(
        self,
        cache: CacheProtocol,
        fetcher: FetcherProtocol,
        settings: Settings,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._settings = settings

    def rewrite_manifest(self, content: str, manifest_url: str, mode: RewriteMode) -> str:
        prefix = self._settings.proxy.proxy_prefix
        if mode is RewriteMode.CONTEXT:
            return rewrite_with_context(
                content, RewriteContext(original_url=manifest_url, proxy_prefix=prefix)
            )
        return rewrite_direct(content, prefix)

    async def handle(
        self,
        client_url: str,
        variant: UpstreamVariant,
        rewrite_mode: RewriteMode | None = None,
    ) -> ProxyResult:
        """Serve ``client_url`` through ``variant``.

        Raises StreamProxyError with INVALID_INPUT for unparseable URLs and
        UPSTREAM_ERROR for failed upstream fetches or body reads.
        """
        category = classify(client_url)
        fetch = build_fetch_request(client_url, variant, self._settings.upstream)
        req_log = log.bind(url=fetch.url, category=category, variant=variant)

        if category is ContentCategory.CACHEABLE_BINARY:
            entry = self._cache.get(fetch.url)
            if entry is not None:
                req_log.info("cache_hit", size=len(entry.payload))
                return ProxyResult(content_type=entry.content_type, body=entry.payload, cached=True)
            req_log.info("cache_miss")

        response = await self._fetcher.open(fetch)
        content_type = response.headers.get("content-type")

        if category is ContentCategory.OTHER:
            req_log.info("stream_passthrough", content_type=content_type)
            return ProxyResult(content_type=content_type, stream=_iter_body(response))

        try:
            await response.aread()
        except httpx.HTTPError as exc:
            raise StreamProxyError(
                code=ErrorCode.UPSTREAM_ERROR,
                message=f"Error reading upstream body from {fetch.url}: {exc}",
            ) from exc
        finally:
            await response.aclose()

        if category is ContentCategory.MANIFEST:
            mode = rewrite_mode or RewriteMode(self._settings.proxy.rewrite_mode)
            rewritten = self.rewrite_manifest(response.text, fetch.url, mode)
            req_log.info("manifest_rewritten", mode=mode, content_length=len(rewritten))
            return ProxyResult(content_type=content_type, body=rewritten)

        payload = response.content
        self._cache.put(fetch.url, payload, content_type)
        req_log.info("cache_stored", size=len(payload))
        return ProxyResult(content_type=content_type, body=payload)
