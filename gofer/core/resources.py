"""
Per-watch resource lifecycle.

A ResourceSet collects release callbacks as resources are acquired and runs
each of them exactly once, newest first, on teardown.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Callable, Sequence

from gofer.exceptions import ResourceAcquisitionError

logger = logging.getLogger(__name__)

KILL_GRACE_SECONDS = 5.0


class ResourceSet:
    """Ordered release callbacks with idempotent teardown."""

    def __init__(self) -> None:
        self._releases: list[tuple[str, Callable[[], None]]] = []
        self._cleaned = False

    def __len__(self) -> int:
        return len(self._releases)

    def __enter__(self) -> "ResourceSet":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    @property
    def is_cleaned(self) -> bool:
        """Whether teardown has run."""
        return self._cleaned

    def add(self, name: str, release: Callable[[], None]) -> None:
        """Register ``release``; after teardown it runs immediately instead."""
        if self._cleaned:
            logger.debug("Resource %s registered after teardown; releasing now", name)
            self._release(name, release)
            return
        self._releases.append((name, release))

    def cleanup(self) -> None:
        """Release everything once. Later calls are no-ops."""
        if self._cleaned:
            return
        self._cleaned = True
        releases, self._releases = self._releases, []
        for name, release in reversed(releases):
            self._release(name, release)

    @staticmethod
    def _release(name: str, release: Callable[[], None]) -> None:
        try:
            release()
        except Exception:
            logger.warning("Error releasing resource %s", name, exc_info=True)


def remove_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Error removing temporary file %s: %s", path, exc)


def _force_kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass


def terminate_process(process: asyncio.subprocess.Process, grace: float = KILL_GRACE_SECONDS) -> None:
    """SIGTERM ``process`` and SIGKILL it if it is still alive after ``grace``."""
    if process.returncode is not None:
        return
    try:
        process.send_signal(signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        asyncio.get_running_loop().call_later(grace, _force_kill, process)
    except RuntimeError:
        # no loop left to schedule the escalation on
        _force_kill(process)


async def start_inhibitor(command: Sequence[str]) -> asyncio.subprocess.Process:
    """Start a host process that keeps the screen from blanking or suspending.

    Raises:
        ResourceAcquisitionError: If the inhibitor cannot be started.
    """
    if not command:
        raise ResourceAcquisitionError("Inhibitor command is empty")
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        raise ResourceAcquisitionError(f"Failed to start {command[0]}: {exc}") from exc
    logger.debug("Sleep inhibitor started (pid %s)", process.pid)
    return process
