from __future__ import annotations

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """Cached upstream response for a single segment, image or page."""

    key: str  # Absolute upstream URL that was fetched
    payload: bytes
    content_type: str | None = None
    inserted_at: float  # Cache clock reading at insertion


class CacheStats(BaseModel):
    """Point-in-time counters for the segment cache."""

    count: int
    hits: int
    misses: int
    key_size: int  # Sum of key lengths
    value_size: int  # Sum of payload bytes plus content-type lengths
