"""Integration test fixtures.

Provides a fully wired AppState around a real httpx client (upstream calls
are intercepted with respx) and an ASGI test client bound to the app.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from streamproxy.fetcher import build_http_client
from streamproxy.server import build_state, create_app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from streamproxy.config import Settings
    from streamproxy.state import AppState


@pytest.fixture()
async def app_state(settings: Settings) -> AsyncIterator[AppState]:
    async with build_http_client(settings.upstream) as upstream_client:
        yield build_state(settings, upstream_client)


@pytest.fixture()
async def client(app_state: AppState) -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client talking to the app in-process. The lifespan is not run."""
    app = create_app(state=app_state)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
