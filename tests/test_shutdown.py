from __future__ import annotations

import asyncio
import os
import signal

import pytest

from gofer.core.shutdown import ShutdownCoordinator


@pytest.mark.anyio
async def test_handlers_run_once() -> None:
    calls: list[str] = []
    coordinator = ShutdownCoordinator()

    async def handler() -> None:
        calls.append("ran")

    coordinator.add_handler("one", handler)
    await coordinator.shutdown("test")
    await coordinator.shutdown("again")

    assert calls == ["ran"]
    assert coordinator.is_shutting_down
    assert coordinator.reason == "test"


@pytest.mark.anyio
async def test_failing_handler_does_not_block_others() -> None:
    calls: list[str] = []
    coordinator = ShutdownCoordinator()

    async def broken() -> None:
        raise RuntimeError("boom")

    async def fine() -> None:
        calls.append("fine")

    coordinator.add_handler("broken", broken)
    coordinator.add_handler("fine", fine)
    await coordinator.shutdown()

    assert calls == ["fine"]


@pytest.mark.anyio
async def test_slow_handlers_are_bounded_by_timeout() -> None:
    coordinator = ShutdownCoordinator(timeout=0.05)

    async def slow() -> None:
        await asyncio.sleep(10)

    coordinator.add_handler("slow", slow)
    await asyncio.wait_for(coordinator.shutdown(), timeout=1)


@pytest.mark.anyio
async def test_signal_triggers_shutdown() -> None:
    done = asyncio.Event()
    coordinator = ShutdownCoordinator()

    async def handler() -> None:
        done.set()

    coordinator.add_handler("marker", handler)
    coordinator.install()
    try:
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(done.wait(), timeout=1)
        await asyncio.wait_for(coordinator.wait(), timeout=1)
    finally:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGQUIT):
            loop.remove_signal_handler(sig)

    assert coordinator.reason == "SIGTERM"
