"""
Base tool class for Gofer tools.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

from gofer.core.context import TaskContext


@dataclass
class ToolResult:
    """Result of a tool execution."""

    success: bool
    content: str
    error: str | None = None
    metadata: dict[str, Any] | None = None


class BaseTool(ABC):
    """Abstract base class for tools.

    Tools receive the per-task context as the ``context`` keyword argument.
    """

    name: str = ""
    description: str = ""
    risk_level: Literal["read", "exec"] = "read"
    needs_approval: bool = False

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters.

        Returns:
            JSON Schema dictionary.
        """
        pass

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific parameters plus ``context``.

        Returns:
            ToolResult with success/failure and content.
        """
        pass

    def to_ollama_format(self) -> dict[str, Any]:
        """Convert tool to Ollama tool format.

        Returns:
            Dictionary suitable for Ollama tools parameter.
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def require_context(kwargs: dict[str, Any]) -> TaskContext:
    context = kwargs.get("context")
    if not isinstance(context, TaskContext):
        raise TypeError("Tool called without a task context")
    return context


def to_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)


def string_schema(name: str, description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {name: {"type": "string", "description": description}},
        "required": [name],
    }
