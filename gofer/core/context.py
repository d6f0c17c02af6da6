"""
Per-task execution context.

A TaskContext is created for every incoming task and passed explicitly to the
gateway, the watcher and the tools, so concurrent tasks never notify each
other's channel.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable

from gofer.notify.base import NotificationSink, PromptResponse, Prompter

logger = logging.getLogger(__name__)


class ExecutionContext(str, Enum):
    TELEGRAM = "telegram"
    REPL = "repl"


@dataclass
class TaskContext:
    channel: ExecutionContext
    sink: NotificationSink
    prompter: Prompter | None = None
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    _pending: set[asyncio.Task[bool]] = field(default_factory=set, init=False, repr=False)

    def post(self, text: str) -> None:
        """Send a message without waiting for delivery."""
        task = asyncio.get_running_loop().create_task(self._guard(self.sink.send_message(text)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def notify(self, text: str) -> bool:
        return await self._guard(self.sink.send_message(text))

    async def send_document(self, path: Path | str, caption: str | None = None) -> bool:
        return await self._guard(self.sink.send_document(path, caption))

    async def ask(self, prompt: str) -> PromptResponse:
        if self.prompter is None:
            return PromptResponse(False, f"No prompt channel available for {self.channel.value}")
        try:
            return await self.prompter.ask(prompt)
        except Exception as exc:
            logger.warning("Prompt failed on %s channel: %s", self.channel.value, exc)
            return PromptResponse(False, f"Prompt failed: {exc}")

    async def flush(self) -> None:
        """Wait for every posted message to be delivered (or to fail)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _guard(self, delivery: Awaitable[bool]) -> bool:
        try:
            return bool(await delivery)
        except Exception as exc:
            logger.warning(
                "Notification on %s channel failed (task %s): %s",
                self.channel.value,
                self.task_id,
                exc,
            )
            return False
