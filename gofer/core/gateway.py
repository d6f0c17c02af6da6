"""
Command execution gateway.

Consults the policy classifier before any process is spawned and always
resolves to an ExecutionResult; it never raises to its caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable

from gofer.config import ExecutionConfig
from gofer.core.context import TaskContext
from gofer.core.policy import OperatingMode, Refuse, Simulate, classify
from gofer.exceptions import ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of one gateway call."""

    success: bool
    stdout: str = ""
    stderr: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


# (command, timeout) -> (returncode, stdout, stderr)
Spawner = Callable[[str, float | None], Awaitable[tuple[int | None, bytes, bytes]]]


async def spawn_shell(command: str, timeout: float | None = None) -> tuple[int | None, bytes, bytes]:
    """Run ``command`` through the host shell and collect its output.

    Raises:
        ExecutionError: If the command does not finish within ``timeout``.
        OSError: If the shell cannot be started.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ExecutionError(f"Command timed out after {timeout:g} seconds")
    return process.returncode, stdout, stderr


class CommandGateway:
    """Executes, simulates or refuses agent-requested commands."""

    def __init__(self, config: ExecutionConfig, *, spawner: Spawner | None = None) -> None:
        self.config = config
        self._spawner = spawner or spawn_shell

    @property
    def mode(self) -> OperatingMode:
        return OperatingMode.from_config(self.config)

    async def run(self, command: str, context: TaskContext) -> ExecutionResult:
        decision = classify(command, self.mode)

        if isinstance(decision, Refuse):
            logger.warning("Blocked command (%s mode): %s", self.mode.value, command)
            context.post(f"Gofer attempted to run a blocked command: {command}. Execution was blocked.")
            return ExecutionResult(False, "", decision.reason)

        if isinstance(decision, Simulate):
            logger.info("Simulating command: %s", command)
            context.post(f"[DEMO] Simulating safe command: {command}")
            return ExecutionResult(True, decision.stdout.strip(), decision.stderr.strip())

        return await self._execute(command)

    async def _execute(self, command: str) -> ExecutionResult:
        try:
            returncode, stdout, stderr = await self._spawner(command, self.config.command_timeout)
        except Exception as exc:
            logger.warning("Failed to execute command %r: %s", command, exc)
            return ExecutionResult(False, "", str(exc) or exc.__class__.__name__)

        stdout_text = (stdout or b"").decode("utf-8", errors="replace").strip()
        stderr_text = (stderr or b"").decode("utf-8", errors="replace").strip()
        success = returncode == 0
        if not success and not stderr_text:
            stderr_text = f"Command exited with code {returncode}"
        logger.debug("Command %r exited with %s", command, returncode)
        return ExecutionResult(success, stdout_text, stderr_text)
