"""Notification channels and operator prompts."""

from gofer.notify.base import NotificationSink, PromptResponse, Prompter
from gofer.notify.console import ConsolePrompter, ConsoleSink
from gofer.notify.prompts import PromptBroker
from gofer.notify.telegram import TelegramInbox, TelegramPrompter, TelegramSink

__all__ = [
    "NotificationSink",
    "PromptResponse",
    "Prompter",
    "ConsoleSink",
    "ConsolePrompter",
    "PromptBroker",
    "TelegramSink",
    "TelegramInbox",
    "TelegramPrompter",
]
