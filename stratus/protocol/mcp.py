"""Model Context Protocol message schemas used by the conversation handler."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS: tuple[str, ...] = (
    LATEST_PROTOCOL_VERSION,
    "2025-03-26",
    "2024-11-05",
)

# Method names
INITIALIZE = "initialize"
INITIALIZED_NOTIFICATION = "notifications/initialized"
PING = "ping"
TOOLS_LIST = "tools/list"
TOOLS_CALL = "tools/call"


class MCPModel(BaseModel):
    """Base for MCP payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Implementation(MCPModel):
    """Name and version of a client or server implementation."""

    name: str
    version: str


class InitializeParams(MCPModel):
    protocol_version: str
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: Implementation


class InitializeResult(MCPModel):
    protocol_version: str
    capabilities: dict[str, Any]
    server_info: Implementation
    instructions: str | None = None


class ToolDescriptor(MCPModel):
    """Tool metadata returned by tools/list."""

    name: str
    description: str
    input_schema: dict[str, Any]


class ListToolsResult(MCPModel):
    tools: list[ToolDescriptor]


class CallToolParams(MCPModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class TextContent(MCPModel):
    type: Literal["text"] = "text"
    text: str


ContentBlock = TextContent


class CallToolResult(MCPModel):
    content: list[ContentBlock]
    is_error: bool = False


def negotiate_protocol_version(requested: str) -> str:
    """Echo the client's version when supported, otherwise offer the latest."""
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return LATEST_PROTOCOL_VERSION
