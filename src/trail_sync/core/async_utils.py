"""Async helpers for calling the synchronous engines from async handlers."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


class AlreadyInProgressError(RuntimeError):
    """A single-flight operation was started while one is still running."""


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous function in a thread without blocking the event loop.

    Example:
        # In an MCP tool handler:
        result = await run_sync(engine.drain)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


class SingleFlight:
    """Refuse to start an operation while a previous run is still in flight.

    Callers share one instance per operation (e.g. one for sync drains).
    State is only touched from the event loop thread, so a plain flag is
    enough.

    Args:
        name: Operation name used in the "already in progress" message.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._running = False

    @property
    def in_progress(self) -> bool:
        return self._running

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run *func* in a worker thread unless a run is already active.

        Raises:
            AlreadyInProgressError: Another run has not finished yet.
        """
        if self._running:
            raise AlreadyInProgressError(f"{self.name} already in progress")
        self._running = True
        try:
            return await run_sync(func, *args, **kwargs)
        finally:
            self._running = False
