"""
Command execution tools.
"""

from __future__ import annotations

from typing import Any

from gofer.core.gateway import CommandGateway
from gofer.tools.base import BaseTool, ToolResult, require_context, string_schema, to_json


class ExecuteCommandTool(BaseTool):
    """Run a shell command through the policy gateway."""

    name = "execute_command"
    description = (
        "Execute a shell command on the host. Returns JSON with success, stdout and stderr."
    )
    risk_level = "exec"

    def __init__(self, gateway: CommandGateway) -> None:
        self.gateway = gateway

    @property
    def parameters(self) -> dict[str, Any]:
        return string_schema("cmd", "The shell command to execute")

    async def execute(self, cmd: str = "", **kwargs: Any) -> ToolResult:
        context = require_context(kwargs)
        if not cmd.strip():
            return ToolResult(success=False, content="", error="Missing required parameter: cmd")

        result = await self.gateway.run(cmd, context)
        return ToolResult(
            success=result.success,
            content=to_json(result.to_dict()),
            error=None if result.success else result.stderr,
            metadata={"command": cmd, "mode": self.gateway.mode.value},
        )


class ExecuteRiskyCommandTool(ExecuteCommandTool):
    """Same gateway, but the agent layer must get the operator's approval first."""

    name = "execute_risky_command"
    description = (
        "Execute a shell command that changes system state (installs, deletes, restarts). "
        "The operator is asked to approve it before it runs."
    )
    needs_approval = True
