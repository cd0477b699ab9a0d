"""Tool abstraction and registry exposed through tools/list and tools/call."""

from stratus.tools.base import Tool, ToolError, ToolRegistry

__all__ = ["Tool", "ToolError", "ToolRegistry"]
