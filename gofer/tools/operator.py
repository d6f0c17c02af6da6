"""
Tools for talking to the operator on the task's channel.
"""

from __future__ import annotations

from typing import Any

from gofer.tools.base import BaseTool, ToolResult, require_context, string_schema, to_json


class PromptUserTool(BaseTool):
    """Ask the operator a question and wait for the answer."""

    name = "prompt_user"
    description = "Ask the user a question and wait for their reply."

    @property
    def parameters(self) -> dict[str, Any]:
        return string_schema("prompt", "The question to ask")

    async def execute(self, prompt: str = "", **kwargs: Any) -> ToolResult:
        context = require_context(kwargs)
        response = await context.ask(prompt)
        return ToolResult(
            success=response.success,
            content=to_json({"success": response.success, "response": response.response}),
            error=None if response.success else response.response,
        )


class UpdateUserTool(BaseTool):
    """Send a progress note."""

    name = "update_user"
    description = "Send the user a short progress update without waiting for a reply."

    @property
    def parameters(self) -> dict[str, Any]:
        return string_schema("message", "The update to send")

    async def execute(self, message: str = "", **kwargs: Any) -> ToolResult:
        context = require_context(kwargs)
        sent = await context.notify(f"Gofer sent an update: {message}")
        return ToolResult(success=sent, content=to_json({"success": sent}))


class DoneTool(BaseTool):
    """Report that the task is finished."""

    name = "done_with_task"
    description = "Tell the user the task is finished, with a short summary."

    @property
    def parameters(self) -> dict[str, Any]:
        return string_schema("message", "Summary of what was done")

    async def execute(self, message: str = "", **kwargs: Any) -> ToolResult:
        context = require_context(kwargs)
        sent = await context.notify(f"Task completed: {message}")
        return ToolResult(
            success=True,
            content=to_json({"success": True, "message": message}),
            metadata={"delivered": sent},
        )
