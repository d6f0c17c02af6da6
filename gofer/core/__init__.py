"""Core module initialization."""

from gofer.core.context import ExecutionContext, TaskContext
from gofer.core.gateway import CommandGateway, ExecutionResult
from gofer.core.policy import OperatingMode, classify, explain
from gofer.core.watcher import DesktopWatcher, WatchResult

__all__ = [
    "ExecutionContext",
    "TaskContext",
    "CommandGateway",
    "ExecutionResult",
    "OperatingMode",
    "classify",
    "explain",
    "DesktopWatcher",
    "WatchResult",
]
