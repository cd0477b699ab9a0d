"""Stratus: session-scoped MCP server exposing National Weather Service tools."""

__version__ = "1.0.0"
