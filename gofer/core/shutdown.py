"""
Process-wide graceful shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGQUIT)

CleanupHandler = Callable[[], Awaitable[object]]


class ShutdownCoordinator:
    """Runs registered cleanup handlers once, concurrently, under a timeout.

    Args:
        timeout: Overall time limit in seconds for all handlers together.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._handlers: list[tuple[str, CleanupHandler]] = []
        self._requested = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.reason: str | None = None

    @property
    def is_shutting_down(self) -> bool:
        return self._requested.is_set()

    def add_handler(self, name: str, handler: CleanupHandler) -> None:
        self._handlers.append((name, handler))

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Route SIGINT, SIGTERM and SIGQUIT to ``request``."""
        loop = loop or asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request, sig.name)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handlers not supported for %s", sig.name)

    def request(self, reason: str = "requested") -> None:
        """Start shutdown from synchronous code such as a signal handler."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.shutdown(reason))

    async def shutdown(self, reason: str = "requested") -> None:
        """Run every handler once. Later calls wait for the first run."""
        if self._requested.is_set():
            if self._task is not None and self._task is not asyncio.current_task():
                await asyncio.shield(self._task)
            return

        self._requested.set()
        self.reason = reason
        logger.info("Shutting down (%s)", reason)

        async def _run(name: str, handler: CleanupHandler) -> None:
            try:
                await handler()
            except Exception:
                logger.warning("Cleanup handler %s failed", name, exc_info=True)

        handlers = [_run(name, handler) for name, handler in self._handlers]
        try:
            await asyncio.wait_for(asyncio.gather(*handlers), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Shutdown cleanup did not finish within %.0f seconds", self.timeout)

    async def wait(self) -> None:
        """Block until shutdown has been requested."""
        await self._requested.wait()
