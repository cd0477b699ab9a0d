"""API response models."""

from stratus.api.models.health import HealthResponse

__all__ = ["HealthResponse"]
