"""
Display utilities for terminal output.
"""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gofer import __version__
from gofer.config import Config


console = Console()


def display_banner(config: Config, mode: str) -> None:
    """Display the startup banner.

    Args:
        config: Application configuration.
        mode: Operating mode label of the command gateway.
    """
    title = Text()
    title.append("GOFER", style="bold cyan")

    body = Text()
    body.append(f"Desktop agent boundary layer v{__version__}\n\n", style="dim")
    body.append("Execution: ", style="dim")
    body.append(f"{mode}\n", style="green" if mode == "normal" else "yellow")
    body.append("Watcher: ", style="dim")
    body.append(
        "enabled\n" if config.watcher.enabled else "disabled\n",
        style="green" if config.watcher.enabled else "yellow",
    )
    body.append("Classifier: ", style="dim")
    body.append(f"{config.classifier.provider}/{config.classifier.model}", style="blue")

    console.print(Panel(body, title=title, border_style="cyan", padding=(1, 2)))


def display_error(message: str) -> None:
    """Display an error message.

    Args:
        message: Error message to display.
    """
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def display_info(message: str) -> None:
    """Display an info message.

    Args:
        message: Info message to display.
    """
    console.print(f"[cyan]ℹ[/cyan] {escape(message)}")


def display_success(message: str) -> None:
    """Display a success message.

    Args:
        message: Success message to display.
    """
    console.print(f"[green]✓[/green] {escape(message)}")


def display_warning(message: str) -> None:
    """Display a warning message.

    Args:
        message: Warning message to display.
    """
    console.print(f"[yellow]⚠[/yellow] {escape(message)}")


def display_channel_message(tag: str, message: str, style: str = "blue") -> None:
    """Display a message addressed to the local operator."""
    console.print(f"[{style}]\\[{escape(tag)}][/{style}] {escape(message)}")


def display_policy(command: str, mode: str, rule: str, outcome: str, detail: str) -> None:
    """Render a policy dry-run as a table."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("command", escape(command))
    table.add_row("mode", mode)
    table.add_row("rule", escape(rule))
    table.add_row("outcome", outcome)
    if detail:
        table.add_row("detail", escape(detail))
    console.print(Panel(table, title="Policy", border_style="cyan"))


def display_output(stdout: str, stderr: str) -> None:
    """Print command output streams."""
    if stdout:
        console.print(escape(stdout))
    if stderr:
        console.print(f"[red]{escape(stderr)}[/red]")
