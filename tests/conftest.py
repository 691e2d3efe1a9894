"""Shared test fixtures for the streamproxy test suite."""

from __future__ import annotations

import pytest

from streamproxy.cache import SegmentCache
from streamproxy.config import Settings

ADMIN_TOKEN = "test-admin-token"


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def admin_token() -> str:
    return ADMIN_TOKEN


@pytest.fixture()
def settings() -> Settings:
    return Settings(admin={"token": ADMIN_TOKEN})


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def segment_cache(settings: Settings, clock: FakeClock) -> SegmentCache:
    return SegmentCache(
        ttl_seconds=settings.cache.ttl_seconds,
        admin_token=ADMIN_TOKEN,
        max_entries=settings.cache.max_entries,
        clock=clock,
    )
