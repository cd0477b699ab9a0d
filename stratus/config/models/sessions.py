"""Session lifecycle configuration."""

from pydantic import BaseModel, Field


class SessionsConfig(BaseModel):
    """Session registry and conversation lifecycle settings."""

    accept_client_session_ids: bool = Field(
        default=True,
        description=(
            "Adopt a session ID supplied on an initialize request when it is unused. "
            "When disabled the server always mints its own identifier."
        ),
    )
    idle_timeout_seconds: float = Field(
        default=1800.0,
        ge=0.0,
        description="Close a conversation after this much inactivity (0 disables)",
    )
    shutdown_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Upper bound for terminating a single conversation during shutdown",
    )
    tombstone_limit: int = Field(
        default=1024,
        ge=0,
        description="How many terminated session IDs to remember for idempotent DELETE",
    )
