"""Background loop that periodically removes expired links."""

from __future__ import annotations

import asyncio
import logging

from onetime_link.core.config import settings
from onetime_link.services.links import LinkService

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 30

_task: asyncio.Task | None = None


def _interval() -> int:
    return max(MIN_INTERVAL_SECONDS, settings.LINK_CLEANUP_INTERVAL_SECONDS)


def run_sweep_once(service: LinkService) -> int | None:
    try:
        removed = service.cleanup()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Expired link sweep failed: %s", exc)
        return None
    logger.info("Expired link sweep completed: removed=%s", removed)
    return removed


async def _loop(service: LinkService) -> None:
    startup_delay = max(0, settings.LINK_CLEANUP_STARTUP_DELAY_SECONDS)
    interval = _interval()
    if startup_delay:
        await asyncio.sleep(startup_delay)
    while True:
        await asyncio.to_thread(run_sweep_once, service)
        await asyncio.sleep(interval)


async def start_link_sweeper(service: LinkService) -> None:
    global _task
    if _task is not None:
        return
    if not settings.LINK_CLEANUP_ENABLED:
        return
    _task = asyncio.create_task(_loop(service), name="link-sweeper")
    logger.info("Expired link sweeper started (every %s seconds)", _interval())


async def stop_link_sweeper() -> None:
    global _task
    task = _task
    _task = None
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
