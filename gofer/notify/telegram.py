"""
Telegram channel over the Bot HTTP API.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from gofer.config import TelegramConfig
from gofer.exceptions import NotificationError
from gofer.notify.base import NotificationSink, PromptResponse, Prompter
from gofer.notify.prompts import PromptBroker

logger = logging.getLogger(__name__)


class TelegramSink(NotificationSink):
    """Sends messages and documents to the configured chat."""

    name = "telegram"

    def __init__(
        self,
        config: TelegramConfig,
        *,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.chat_id = config.chat_id
        self._client = client
        self._sleep = sleep

    @property
    def available(self) -> bool:
        return bool(self.config.token and self.chat_id)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_url, timeout=self.config.request_timeout
            )
        return self._client

    async def _call(
        self,
        method: str,
        *,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        client = self._get_client()
        kwargs: dict[str, Any] = {"data": data, "files": files}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await client.post(f"/bot{self.config.token}/{method}", **kwargs)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise NotificationError(f"Telegram {method} failed: {exc}") from exc
        if not isinstance(payload, dict) or not payload.get("ok"):
            description = payload.get("description") if isinstance(payload, dict) else None
            raise NotificationError(
                f"Telegram {method} rejected (HTTP {response.status_code}): {description or 'unknown error'}"
            )
        return payload.get("result")

    async def post_message(self, text: str) -> int | None:
        """Send ``text`` and return the Telegram message id, or None on failure."""
        if not self.available:
            logger.info("[TELEGRAM UNAVAILABLE] %s", text)
            return None

        retries = self.config.send_retries
        for attempt in range(retries):
            try:
                result = await self._call("sendMessage", data={"chat_id": self.chat_id, "text": text})
                return int(result.get("message_id", 0)) if isinstance(result, dict) else 0
            except NotificationError as exc:
                logger.warning(
                    "Failed to send Telegram message (attempt %d/%d): %s", attempt + 1, retries, exc
                )
                if attempt < retries - 1:
                    await self._sleep(1.0 * (attempt + 1))
        return None

    async def send_message(self, text: str) -> bool:
        return await self.post_message(text) is not None

    async def send_document(self, path: Path | str, caption: str | None = None) -> bool:
        path = Path(path)
        if not self.available:
            logger.info("[TELEGRAM UNAVAILABLE] Would send file: %s", path)
            return False

        if not path.exists():
            logger.error("File does not exist: %s", path)
            await self.send_message("Error: File not found")
            return False

        data: dict[str, Any] = {"chat_id": self.chat_id}
        if caption:
            data["caption"] = caption

        retries = self.config.send_retries
        for attempt in range(retries):
            try:
                with open(path, "rb") as handle:
                    await self._call(
                        "sendDocument", data=data, files={"document": (path.name, handle)}
                    )
                return True
            except (NotificationError, OSError) as exc:
                logger.warning(
                    "Failed to send Telegram document (attempt %d/%d): %s", attempt + 1, retries, exc
                )
                if attempt == retries - 1:
                    await self.send_message(f"Error sending file: {exc}")
                    return False
                await self._sleep(1.0 * (attempt + 1))
        return False

    async def get_updates(self, offset: int | None = None) -> list[dict[str, Any]]:
        """Long-poll for inbound updates.

        Raises:
            NotificationError: If the request fails.
        """
        data: dict[str, Any] = {"timeout": self.config.poll_timeout}
        if offset is not None:
            data["offset"] = offset
        result = await self._call(
            "getUpdates", data=data, timeout=self.config.request_timeout + self.config.poll_timeout
        )
        return list(result or [])

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class TelegramInbox:
    """Feeds inbound chat messages into the prompt broker."""

    def __init__(
        self,
        sink: TelegramSink,
        broker: PromptBroker,
        *,
        error_pause: float = 5.0,
    ) -> None:
        self.sink = sink
        self.broker = broker
        self.error_pause = error_pause
        self._offset: int | None = None

    def handle_update(self, update: dict[str, Any]) -> bool:
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            self._offset = update_id + 1

        message = update.get("message") or {}
        chat = message.get("chat") or {}
        if "id" not in chat:
            return False
        chat_id = str(chat["id"])
        if self.sink.chat_id and chat_id != self.sink.chat_id:
            logger.info("Ignoring message from unexpected chat %s", chat_id)
            return False

        reply = message.get("reply_to_message") or {}
        reply_to = reply.get("message_id")
        return self.broker.deliver(
            chat_id,
            message.get("text") or "",
            reply_to=str(reply_to) if reply_to is not None else None,
        )

    async def run(self, stop: asyncio.Event) -> None:
        """Poll until ``stop`` is set."""
        while not stop.is_set():
            try:
                updates = await self.sink.get_updates(self._offset)
            except NotificationError as exc:
                logger.warning("Telegram polling error: %s", exc)
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.error_pause)
                except asyncio.TimeoutError:
                    pass
                continue
            for update in updates:
                self.handle_update(update)


class TelegramPrompter(Prompter):
    """Asks the operator over Telegram and waits for a reply from that chat."""

    def __init__(self, sink: TelegramSink, broker: PromptBroker, *, timeout: float) -> None:
        self.sink = sink
        self.broker = broker
        self.timeout = timeout

    async def ask(self, prompt: str) -> PromptResponse:
        if not self.sink.available:
            return PromptResponse(False, "Telegram not available")
        # Registered before sending so a fast reply cannot arrive unmatched.
        pending = self.broker.open(self.sink.chat_id or "")
        message_id = await self.sink.post_message(f"Gofer asked: {prompt}")
        if message_id is None:
            self.broker.discard(pending)
            return PromptResponse(False, "Failed to send prompt message")
        self.broker.rekey(pending, str(message_id))
        return await self.broker.wait(pending, self.timeout)
