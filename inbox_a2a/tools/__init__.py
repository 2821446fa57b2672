"""Tool interfaces, registry and built-in tools."""

from inbox_a2a.tools.base import ApprovableTool, BaseTool, Tool, ToolContext
from inbox_a2a.tools.registry import ToolRegistry, ToolSpec

__all__ = [
    "ApprovableTool",
    "BaseTool",
    "Tool",
    "ToolContext",
    "ToolRegistry",
    "ToolSpec",
]
