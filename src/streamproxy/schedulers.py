"""Background scheduler coroutine for cache expiry sweeps."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from streamproxy.state import AppState

log = structlog.get_logger()


async def run_cache_cleanup_scheduler(state: AppState) -> None:
    """Sweep expired cache entries every ``cache.check_period_seconds``.

    Runs until cancelled by the lifespan. A failing sweep is logged and the
    loop carries on with the next period.
    """
    period = state.settings.cache.check_period_seconds

    while True:
        await asyncio.sleep(period)
        try:
            removed = state.cache.cleanup_expired()
        except Exception:
            log.warning("cache_cleanup_scheduler_error", exc_info=True)
            continue
        if removed:
            log.info("cache_sweep_removed", removed=removed)
