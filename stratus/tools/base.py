"""Tool interface.

A tool is a stateless async operation. Arguments are validated against the
tool's pydantic model before `run` is called; `run` returns content blocks or
raises ToolError with a human-readable explanation, which the conversation
handler reports as tool output rather than as a protocol error.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from stratus.protocol.mcp import ContentBlock, ToolDescriptor


class ToolError(Exception):
    """Descriptive tool failure shown to the client as text content."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class Tool(ABC):
    """Base class for tools.

    Subclasses set `name`, `description` and `args_model`.
    """

    name: str
    description: str
    args_model: type[BaseModel]

    @abstractmethod
    async def run(self, args: Any) -> list[ContentBlock]:
        """Execute the tool with arguments already validated by `args_model`."""

    def validate(self, arguments: dict[str, Any]) -> BaseModel:
        """Validate raw arguments. Raises pydantic.ValidationError."""
        return self.args_model.model_validate(arguments)

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.args_model.model_json_schema(),
        )


class ToolRegistry:
    """Name-indexed collection of tools shared by all conversations.

    Tools are stateless, so one registry instance serves every session.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name} is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[ToolDescriptor]:
        return [tool.descriptor() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
