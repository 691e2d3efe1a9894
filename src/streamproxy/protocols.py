"""Protocol interfaces for swappable components.

The orchestrator and AppState reference these protocols, not the concrete
implementations, so tests can substitute lightweight fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import httpx

    from streamproxy.models.cache import CacheEntry, CacheStats
    from streamproxy.models.fetch import FetchRequest


class CacheProtocol(Protocol):
    """Interface for the segment cache."""

    def put(self, key: str, payload: bytes, content_type: str | None) -> None: ...

    def get(self, key: str) -> CacheEntry | None: ...

    def clear(self, token: str | None) -> int: ...

    def stats(self) -> CacheStats: ...

    def cleanup_expired(self) -> int: ...


class FetcherProtocol(Protocol):
    """Interface for the upstream fetcher."""

    async def open(self, request: FetchRequest) -> httpx.Response: ...
