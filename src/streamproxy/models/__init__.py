from __future__ import annotations

from streamproxy.models.api import (
    CacheStatsOutput,
    ClearCacheInput,
    ClearCacheOutput,
    StatusOutput,
)
from streamproxy.models.cache import CacheEntry, CacheStats
from streamproxy.models.fetch import (
    ContentCategory,
    FetchRequest,
    ProxyResult,
    RewriteContext,
    RewriteMode,
    UpstreamVariant,
)

__all__ = [
    # cache
    "CacheEntry",
    "CacheStats",
    # fetch
    "ContentCategory",
    "FetchRequest",
    "ProxyResult",
    "RewriteContext",
    "RewriteMode",
    "UpstreamVariant",
    # api
    "CacheStatsOutput",
    "ClearCacheInput",
    "ClearCacheOutput",
    "StatusOutput",
]
