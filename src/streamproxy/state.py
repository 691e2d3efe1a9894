"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan
context manager) and read by every request handler from ``app.state``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from streamproxy.config import Settings
    from streamproxy.protocols import CacheProtocol
    from streamproxy.proxy import ProxyOrchestrator


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every request handler."""

    settings: Settings
    cache: CacheProtocol
    orchestrator: ProxyOrchestrator
    http_client: httpx.AsyncClient | None = None
    started_at: float = field(default_factory=time.monotonic)

    def uptime(self) -> float:
        return time.monotonic() - self.started_at
