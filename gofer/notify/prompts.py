"""
Correlation table for prompts answered over a chat channel.

Each outstanding prompt gets a correlation id and a pending future. An
inbound message resolves the prompt it replies to, or else the oldest pending
prompt for the same chat. Every entry is removed when it resolves or times out.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from gofer.notify.base import PromptResponse

logger = logging.getLogger(__name__)


@dataclass
class PendingPrompt:
    correlation_id: str
    chat_id: str
    future: asyncio.Future[str]
    created_at: float = field(default_factory=time.monotonic)


class PromptBroker:
    """Matches inbound chat messages to prompts waiting for an answer."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingPrompt] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def open(self, chat_id: str, correlation_id: str | None = None) -> PendingPrompt:
        """Register a prompt that expects an answer from ``chat_id``."""
        correlation_id = correlation_id or uuid.uuid4().hex
        if correlation_id in self._pending:
            raise ValueError(f"Prompt '{correlation_id}' is already pending")
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        pending = PendingPrompt(correlation_id=correlation_id, chat_id=str(chat_id), future=future)
        self._pending[correlation_id] = pending
        return pending

    def rekey(self, pending: PendingPrompt, correlation_id: str) -> None:
        """Move ``pending`` to ``correlation_id`` once the real id is known."""
        if self._pending.get(pending.correlation_id) is not pending:
            return
        if correlation_id in self._pending:
            raise ValueError(f"Prompt '{correlation_id}' is already pending")
        del self._pending[pending.correlation_id]
        pending.correlation_id = correlation_id
        self._pending[correlation_id] = pending

    def discard(self, pending: PendingPrompt) -> None:
        if self._pending.get(pending.correlation_id) is pending:
            del self._pending[pending.correlation_id]
        if not pending.future.done():
            pending.future.cancel()

    def deliver(self, chat_id: str, text: str, reply_to: str | None = None) -> bool:
        """Resolve a pending prompt with an inbound message.

        Returns:
            True if the message answered a prompt.
        """
        chat_id = str(chat_id)
        target: PendingPrompt | None = None
        if reply_to is not None:
            candidate = self._pending.get(str(reply_to))
            if candidate and candidate.chat_id == chat_id and not candidate.future.done():
                target = candidate
        if target is None:
            target = next(
                (
                    p
                    for p in self._pending.values()
                    if p.chat_id == chat_id and not p.future.done()
                ),
                None,
            )
        if target is None:
            logger.debug("Ignoring message from chat %s: no pending prompt", chat_id)
            return False

        self._pending.pop(target.correlation_id, None)
        target.future.set_result(text)
        return True

    async def wait(self, pending: PendingPrompt, timeout: float) -> PromptResponse:
        """Wait for the answer to ``pending``; always drops the entry afterwards."""
        try:
            text = await asyncio.wait_for(pending.future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.info(
                "Prompt %s timed out after %.0f seconds", pending.correlation_id, timeout
            )
            return PromptResponse(False, "Timeout: No response received")
        finally:
            self._pending.pop(pending.correlation_id, None)
        return PromptResponse(True, text)

    def cancel_all(self) -> None:
        for pending in list(self._pending.values()):
            if not pending.future.done():
                pending.future.cancel()
        self._pending.clear()
