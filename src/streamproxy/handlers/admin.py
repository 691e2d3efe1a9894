"""Request handlers for the service descriptor, status and cache admin."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from streamproxy.models.api import (
    CacheStatsOutput,
    ClearCacheInput,
    ClearCacheOutput,
    StatusOutput,
)

if TYPE_CHECKING:
    from streamproxy.state import AppState

ENDPOINTS: dict[str, str] = {
    "viperProxy": "/viper-proxy/{url}",
    "proxyStream": "/proxy-stream/{url}",
    "status": "/status",
    "clearCache": "/clear-cache",
}


def service_info() -> dict:
    return {
        "status": "online",
        "service": "Stream Proxy Server",
        "endpoints": ENDPOINTS,
    }


def status(state: AppState) -> dict:
    stats = state.cache.stats()
    output = StatusOutput(
        cache_stats=CacheStatsOutput(
            keys=stats.count,
            hits=stats.hits,
            misses=stats.misses,
            ksize=stats.key_size,
            vsize=stats.value_size,
        ),
        uptime=state.uptime(),
    )
    return output.model_dump(mode="json", by_alias=True)


def clear_cache(body: Any, state: AppState) -> dict:
    """Handle a clear-cache call. Raises StreamProxyError(UNAUTHORIZED) on a bad token."""
    log = structlog.get_logger().bind(handler="clear_cache")

    try:
        validated = ClearCacheInput.model_validate(body if isinstance(body, dict) else {})
    except ValidationError:
        log.info("clear_cache_invalid_body")
        validated = ClearCacheInput()

    removed = state.cache.clear(validated.token)
    output = ClearCacheOutput(
        success=True,
        message=f"Cache cleared. {removed} TS segments removed.",
        removed=removed,
    )
    return output.model_dump(mode="json")
