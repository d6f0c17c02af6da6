"""
Base notification sink for Gofer channels.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass
class PromptResponse:
    """Operator answer to a blocking prompt."""

    success: bool
    response: str


class NotificationSink(ABC):
    """Abstract base class for notification channels.

    Implementations must never raise: an unavailable channel degrades to
    logging and a False return value.
    """

    name: str = ""

    @abstractmethod
    async def send_message(self, text: str) -> bool:
        """Deliver a human-readable message.

        Returns:
            True if the channel accepted the message.
        """
        pass

    @abstractmethod
    async def send_document(self, path: Path | str, caption: str | None = None) -> bool:
        """Deliver a file.

        Returns:
            True if the channel accepted the file.
        """
        pass


class Prompter(ABC):
    """Asks the operator a question and waits for the answer."""

    @abstractmethod
    async def ask(self, prompt: str) -> PromptResponse:
        pass
