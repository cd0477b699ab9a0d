"""Health check response model."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    active_sessions: int = Field(..., ge=0, description="Conversations currently registered")
    tools: list[str] = Field(default_factory=list, description="Tools offered to new sessions")
    timestamp: datetime
