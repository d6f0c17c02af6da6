"""
Local terminal channel.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gofer.notify.base import NotificationSink, PromptResponse, Prompter
from gofer.ui.display import display_channel_message
from gofer.ui.input import get_user_input

logger = logging.getLogger(__name__)


class ConsoleSink(NotificationSink):
    """Prints notifications for the operator sitting at the machine."""

    name = "console"

    def __init__(self, tag: str = "REPL") -> None:
        self.tag = tag

    async def send_message(self, text: str) -> bool:
        try:
            display_channel_message(self.tag, text)
        except Exception as exc:
            logger.warning("Console notification failed: %s", exc)
            logger.info("[%s] %s", self.tag, text)
            return False
        return True

    async def send_document(self, path: Path | str, caption: str | None = None) -> bool:
        path = Path(path)
        if not path.exists():
            logger.error("File does not exist: %s", path)
            await self.send_message("Error: File not found")
            return False
        label = f"{caption}: {path}" if caption else f"File: {path}"
        return await self.send_message(label)


class ConsolePrompter(Prompter):
    """Asks the local operator through prompt_toolkit."""

    def __init__(self, sink: ConsoleSink | None = None) -> None:
        self.sink = sink or ConsoleSink()

    async def ask(self, prompt: str) -> PromptResponse:
        await self.sink.send_message(f"Gofer asks: {prompt}")
        try:
            answer = await get_user_input("Your response: ")
        except (EOFError, KeyboardInterrupt):
            return PromptResponse(False, "No response received")
        return PromptResponse(True, answer)
