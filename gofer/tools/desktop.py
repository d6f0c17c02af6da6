"""
Desktop watching tool.
"""

from __future__ import annotations

from typing import Any

from gofer.core.watcher import DesktopWatcher
from gofer.tools.base import BaseTool, ToolResult, require_context, string_schema, to_json


class WatchDesktopTool(BaseTool):
    """Block until a long-running desktop task finishes."""

    name = "watch_desktop"
    description = (
        "Watch the desktop with periodic screenshots until the described task looks "
        "complete, fails, or times out."
    )

    def __init__(self, watcher: DesktopWatcher) -> None:
        self.watcher = watcher

    @property
    def parameters(self) -> dict[str, Any]:
        return string_schema("task", "What should be finished on screen when the task is done")

    async def execute(self, task: str = "", **kwargs: Any) -> ToolResult:
        context = require_context(kwargs)
        if not task.strip():
            return ToolResult(success=False, content="", error="Missing required parameter: task")

        result = await self.watcher.watch(task, context)
        return ToolResult(
            success=result.success,
            content=to_json(result.to_dict()),
            error=None if result.success else result.message,
        )
