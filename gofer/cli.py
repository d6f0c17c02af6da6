"""
Command line entry points for Gofer.

This module handles:
- Argument parsing and logging setup
- Wiring the gateway, watcher and notification channel together
- Running one subcommand under the shutdown coordinator
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from rich.logging import RichHandler

from gofer import __version__
from gofer.config import Config, get_default_config_yaml, load_config
from gofer.core.classifier import build_judge
from gofer.core.context import ExecutionContext, TaskContext
from gofer.core.gateway import CommandGateway
from gofer.core.policy import Execute, Simulate, explain
from gofer.core.shutdown import ShutdownCoordinator
from gofer.core.watcher import DesktopWatcher
from gofer.exceptions import GoferError
from gofer.notify import (
    ConsolePrompter,
    ConsoleSink,
    NotificationSink,
    Prompter,
    PromptBroker,
    TelegramInbox,
    TelegramPrompter,
    TelegramSink,
)
from gofer.tools import build_toolset
from gofer.ui.display import (
    console,
    display_banner,
    display_error,
    display_info,
    display_output,
    display_policy,
    display_success,
    display_warning,
)

logger = logging.getLogger(__name__)


class Gofer:
    """Main Gofer application class."""

    def __init__(self, config: Config, *, use_telegram: bool = False) -> None:
        """Initialize Gofer.

        Args:
            config: Application configuration.
            use_telegram: Deliver notifications and prompts over Telegram
                instead of the local console.
        """
        self.config = config
        self.gateway = CommandGateway(config.execution)
        self.judge = build_judge(config.classifier)
        self.watcher = DesktopWatcher(config.watcher, self.gateway, self.judge)
        self.tools = build_toolset(self.gateway, self.watcher)
        self.broker = PromptBroker()
        self.shutdown = ShutdownCoordinator()
        self._contexts: list[TaskContext] = []
        self._inbox_task: asyncio.Task[None] | None = None

        self.sink: NotificationSink
        self.prompter: Prompter
        self.telegram: TelegramSink | None = None
        if use_telegram:
            self.telegram = TelegramSink(config.telegram)
            self.channel = ExecutionContext.TELEGRAM
            self.sink = self.telegram
            self.prompter = TelegramPrompter(
                self.telegram, self.broker, timeout=config.telegram.prompt_timeout
            )
        else:
            self.channel = ExecutionContext.REPL
            console_sink = ConsoleSink()
            self.sink = console_sink
            self.prompter = ConsolePrompter(console_sink)

        self.shutdown.add_handler("watcher", self._stop_watcher)
        self.shutdown.add_handler("telegram inbox", self._stop_inbox)
        self.shutdown.add_handler("notifications", self._flush_notifications)

    def new_context(self) -> TaskContext:
        """Create the context for one incoming task."""
        context = TaskContext(channel=self.channel, sink=self.sink, prompter=self.prompter)
        self._contexts.append(context)
        return context

    def start_inbox(self) -> None:
        """Start polling Telegram for replies to prompts."""
        if self.telegram is None or self._inbox_task is not None:
            return
        inbox = TelegramInbox(self.telegram, self.broker)
        self._inbox_task = asyncio.get_running_loop().create_task(inbox.run(asyncio.Event()))

    async def aclose(self, reason: str = "exit") -> None:
        await self.shutdown.shutdown(reason)
        if self.telegram is not None:
            await self.telegram.aclose()

    async def _stop_watcher(self) -> None:
        self.watcher.stop()

    async def _stop_inbox(self) -> None:
        self.broker.cancel_all()
        if self._inbox_task is not None:
            self._inbox_task.cancel()
            await asyncio.gather(self._inbox_task, return_exceptions=True)
            self._inbox_task = None

    async def _flush_notifications(self) -> None:
        await asyncio.gather(*(context.flush() for context in self._contexts))


async def cmd_check(app: Gofer, args: argparse.Namespace) -> int:
    mode = app.gateway.mode
    explanation = explain(args.cmd, mode)
    decision = explanation.decision
    if isinstance(decision, Execute):
        outcome, detail = "execute", ""
    elif isinstance(decision, Simulate):
        outcome, detail = "simulate", decision.stdout
    else:
        outcome, detail = "refuse", decision.reason
    rule = explanation.rule if explanation.pattern is None else f"{explanation.rule} ({explanation.pattern})"
    display_policy(args.cmd, mode.value, rule, outcome, detail)
    return 0


async def cmd_run(app: Gofer, args: argparse.Namespace) -> int:
    context = app.new_context()
    result = await app.gateway.run(args.cmd, context)
    await context.flush()
    display_output(result.stdout, result.stderr)
    return 0 if result.success else 1


async def cmd_watch(app: Gofer, args: argparse.Namespace) -> int:
    context = app.new_context()
    display_banner(app.config, app.gateway.mode.value)
    watch_task = asyncio.get_running_loop().create_task(app.watcher.watch(args.task, context))

    async def _cancel_watch() -> None:
        watch_task.cancel()
        await asyncio.gather(watch_task, return_exceptions=True)

    app.shutdown.add_handler("watch task", _cancel_watch)
    try:
        result = await watch_task
    except asyncio.CancelledError:
        display_warning("Desktop watch cancelled")
        return 130

    await context.flush()
    if result.success:
        display_success(result.message)
        return 0
    display_warning(result.message)
    return 1


async def cmd_screenshot(app: Gofer, args: argparse.Namespace) -> int:
    context = app.new_context()
    delivered = await app.watcher.send_screenshot(context)
    return 0 if delivered else 1


async def cmd_ask(app: Gofer, args: argparse.Namespace) -> int:
    context = app.new_context()
    app.start_inbox()
    response = await context.ask(args.question)
    if response.success:
        display_info(response.response)
        return 0
    display_warning(response.response)
    return 1


COMMANDS: dict[str, Callable[[Gofer, argparse.Namespace], Awaitable[int]]] = {
    "check": cmd_check,
    "run": cmd_run,
    "watch": cmd_watch,
    "screenshot": cmd_screenshot,
    "ask": cmd_ask,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gofer",
        description="Policy-gated command execution and AI-judged desktop watching.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (overrides ui.log_level)",
    )
    parser.add_argument(
        "--telegram",
        action="store_true",
        help="Send notifications and prompts to Telegram instead of the console",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Show what the policy would do with a command")
    check.add_argument("cmd", help="Shell command to classify")

    run = sub.add_parser("run", help="Run a command through the policy gateway")
    run.add_argument("cmd", help="Shell command to run")

    watch = sub.add_parser("watch", help="Watch the desktop until a task completes")
    watch.add_argument("task", help="Description of the task being waited on")

    sub.add_parser("screenshot", help="Capture the desktop once and deliver it")

    ask = sub.add_parser("ask", help="Ask the operator a question and print the reply")
    ask.add_argument("question", help="Question to ask")

    sub.add_parser("config", help="Print the default configuration as YAML")
    return parser


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


async def run_cli(argv: Sequence[str] | None = None) -> int:
    """Run the Gofer CLI application.

    Args:
        argv: Arguments to parse (defaults to sys.argv).

    Returns:
        Exit code (0 for success).
    """
    args = build_parser().parse_args(argv)

    if args.command == "config":
        console.print(get_default_config_yaml(), markup=False, highlight=False, end="")
        return 0

    if args.config is not None and not args.config.exists():
        display_error(f"Config file not found: {args.config}")
        return 1

    try:
        config = load_config(args.config)
    except GoferError as exc:
        display_error(str(exc))
        return 1

    setup_logging(args.log_level or config.ui.log_level)

    try:
        app = Gofer(config, use_telegram=args.telegram or config.telegram.enabled)
    except GoferError as exc:
        display_error(str(exc))
        return 1

    app.shutdown.install()
    try:
        return await COMMANDS[args.command](app, args)
    except GoferError as exc:
        display_error(str(exc))
        return 1
    finally:
        await app.aclose()
