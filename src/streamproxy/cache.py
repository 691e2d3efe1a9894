"""In-memory segment cache with a fixed time-to-live.

Storage is a ``cachetools.TTLCache``: entries expire a fixed number of seconds
after insertion, regardless of how often they are read, and expired entries
behave as absent everywhere. They are physically dropped on the next write or
in bulk by ``cleanup_expired``, which the background scheduler calls on its
own period. When ``max_entries`` is reached the least recently used entry is
evicted.

There is no lock: every mutation runs on the event loop thread, and no method
awaits. Two concurrent misses for the same key may both fetch and both ``put``;
the last write wins.
"""

from __future__ import annotations

import secrets
import time
from typing import TYPE_CHECKING

import structlog
from cachetools import TTLCache

from streamproxy.errors import ErrorCode, StreamProxyError
from streamproxy.models.cache import CacheEntry, CacheStats

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()


class SegmentCache:
    """TTL cache keyed by upstream URL, implementing CacheProtocol."""

    def __init__(
        self,
        ttl_seconds: int,
        admin_token: str,
        *,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._admin_token = admin_token
        self._clock = clock
        self._entries: TTLCache[str, CacheEntry] = TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock
        )
        self._hits = 0
        self._misses = 0

    def put(self, key: str, payload: bytes, content_type: str | None) -> None:
        """Store or replace the entry for ``key`` with a fresh age."""
        self._entries[key] = CacheEntry(
            key=key,
            payload=payload,
            content_type=content_type,
            inserted_at=self._clock(),
        )

    def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key``, or ``None`` if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        self._hits += 1
        return entry

    def clear(self, token: str | None) -> int:
        """Drop every entry and reset the hit/miss counters.

        Returns the number of live entries removed. Raises
        StreamProxyError(UNAUTHORIZED) without touching the cache when
        ``token`` does not match the configured admin token.
        """
        if token is None or not secrets.compare_digest(
            token.encode("utf-8"), self._admin_token.encode("utf-8")
        ):
            log.warning("cache_clear_rejected")
            raise StreamProxyError(code=ErrorCode.UNAUTHORIZED, message="Unauthorized")

        self._entries.expire()
        removed = len(self._entries)
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        log.info("cache_cleared", removed=removed)
        return removed

    def stats(self) -> CacheStats:
        # Iterating a TTLCache skips expired entries without evicting them.
        live = list(self._entries.values())
        return CacheStats(
            count=len(live),
            hits=self._hits,
            misses=self._misses,
            key_size=sum(len(e.key) for e in live),
            value_size=sum(len(e.payload) + len(e.content_type or "") for e in live),
        )

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        removed = len(self._entries.expire())
        log.debug("cache_sweep_complete", removed=removed, remaining=len(self._entries))
        return removed

    def __len__(self) -> int:
        return self._entries.currsize
