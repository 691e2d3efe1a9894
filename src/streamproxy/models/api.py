from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ClearCacheInput(BaseModel):
    token: str | None = None


class ClearCacheOutput(BaseModel):
    success: bool
    message: str
    removed: int


class CacheStatsOutput(BaseModel):
    keys: int
    hits: int
    misses: int
    ksize: int
    vsize: int


class StatusOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "online"
    cache_stats: CacheStatsOutput = Field(alias="cacheStats")
    uptime: float  # Seconds since startup
