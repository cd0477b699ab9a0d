"""HTTP server configuration models."""

from pydantic import BaseModel, Field


class APIConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    mcp_path: str = Field(default="/mcp", description="Path of the MCP endpoint")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins",
    )
