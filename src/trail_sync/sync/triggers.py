"""Periodic drain trigger.

Manual runs come through the ``sync_run`` tool; this module adds the
periodic poll.  Both go through the same ``SingleFlight`` guard, so a poll
that fires while a manual run is active is skipped rather than run twice.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..core.async_utils import AlreadyInProgressError, SingleFlight
from .models import SyncRunResult

logger = logging.getLogger(__name__)


async def periodic_drain(
    drain: Callable[[], SyncRunResult],
    interval: float,
    guard: SingleFlight,
    stop: asyncio.Event | None = None,
) -> None:
    """Call *drain* every *interval* seconds until *stop* is set or cancelled.

    Args:
        drain: Synchronous drain function (e.g. ``SyncEngine.drain``).
        interval: Seconds between runs; must be positive.
        guard: Shared single-flight guard for drains.
        stop: Optional event that ends the loop.
    """
    if interval <= 0:
        raise ValueError("Poll interval must be positive")
    stop = stop or asyncio.Event()
    logger.info("Periodic sync every %.0f seconds", interval)

    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
            break
        except asyncio.TimeoutError:
            pass

        try:
            result = await guard.run(drain)
        except AlreadyInProgressError:
            logger.debug("Periodic sync skipped: a drain is already running")
            continue
        except Exception:
            logger.exception("Periodic sync crashed")
            continue

        if not result.success:
            logger.warning("Periodic sync stopped on error: %s", result.error)
