"""
Tool system for Gofer.

Tools are what the agent layer can invoke while working on a task: run
commands, watch the desktop and talk to the operator.
"""

from gofer.core.gateway import CommandGateway
from gofer.core.watcher import DesktopWatcher
from gofer.tools.base import BaseTool, ToolResult
from gofer.tools.command import ExecuteCommandTool, ExecuteRiskyCommandTool
from gofer.tools.desktop import WatchDesktopTool
from gofer.tools.operator import DoneTool, PromptUserTool, UpdateUserTool


def build_toolset(gateway: CommandGateway, watcher: DesktopWatcher) -> dict[str, BaseTool]:
    """Instantiate every tool, keyed by tool name.

    Args:
        gateway: Gateway shared by the command tools.
        watcher: Watcher backing watch_desktop.

    Returns:
        Mapping of tool name to tool instance.
    """
    tools: list[BaseTool] = [
        ExecuteCommandTool(gateway),
        ExecuteRiskyCommandTool(gateway),
        WatchDesktopTool(watcher),
        PromptUserTool(),
        UpdateUserTool(),
        DoneTool(),
    ]
    return {tool.name: tool for tool in tools}


__all__ = [
    "BaseTool",
    "ToolResult",
    "ExecuteCommandTool",
    "ExecuteRiskyCommandTool",
    "WatchDesktopTool",
    "PromptUserTool",
    "UpdateUserTool",
    "DoneTool",
    "build_toolset",
]
