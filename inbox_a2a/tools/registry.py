"""Tool registry resolved once at startup.

Maps tool names to factories plus metadata, so the agent card can list
capabilities without instantiating anything. Unknown names are rejected by
the caller with ``404 unknown_tool``.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from inbox_a2a.tools.base import ApprovableTool, Tool

ToolFactory = Callable[[], Tool]

TOOL_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,63}$")


@dataclass(frozen=True)
class ToolSpec:
    """Tool metadata available without instantiation.

    Attributes:
        name: The tool's registered name.
        description: Human-readable description.
        parameters: JSON Schema for the tool's arguments.
        factory: Creates the tool instance.
        supports_approval: Whether ``tool.approve`` may target this tool.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    factory: ToolFactory
    supports_approval: bool = False


class ToolRegistry:
    """Registry of available tools with lazy instantiation."""

    def __init__(self) -> None:
        self._specs: dict[str, ToolSpec] = {}
        self._instances: dict[str, Tool] = {}

    def register(
        self,
        name: str,
        factory: ToolFactory,
        *,
        description: str,
        parameters: dict[str, Any],
        supports_approval: bool = False,
    ) -> None:
        """Register a tool factory.

        Raises:
            ValueError: If the name is not a lowercase identifier.
        """
        if not TOOL_NAME_PATTERN.match(name):
            raise ValueError(f"Invalid tool name: {name!r}")
        self._instances.pop(name, None)
        self._specs[name] = ToolSpec(
            name=name,
            description=description,
            parameters=parameters,
            factory=factory,
            supports_approval=supports_approval,
        )

    def register_tool(self, tool_cls: type[Any]) -> None:
        """Register a tool class using its class-level metadata."""
        self.register(
            tool_cls.name,
            tool_cls,
            description=tool_cls.description,
            parameters=tool_cls.parameters,
            supports_approval=issubclass(tool_cls, ApprovableTool),
        )

    def get(self, name: str) -> Tool | None:
        if name in self._instances:
            return self._instances[name]
        spec = self._specs.get(name)
        if spec is None:
            return None
        tool = spec.factory()
        self._instances[name] = tool
        return tool

    def spec(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def approval_tools(self) -> list[str]:
        return [s.name for s in self._specs.values() if s.supports_approval]

    def capabilities(self) -> list[dict[str, Any]]:
        """Capability entries for the agent card."""
        return [
            {
                "name": spec.name,
                "description": spec.description,
                "input_schema": spec.parameters,
            }
            for spec in self._specs.values()
        ]

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs
