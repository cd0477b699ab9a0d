"""Server identity advertised to MCP clients."""

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Identity returned in the initialize response."""

    name: str = Field(default="weather", description="Server name for client discovery")
    version: str = Field(default="1.0.0", description="Server version for client discovery")
    instructions: str | None = Field(
        default=None,
        description="Optional usage hints returned to clients during initialization",
    )
