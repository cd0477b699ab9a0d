"""Configuration section models."""

from stratus.config.models.api import APIConfig
from stratus.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    TracingConfig,
)
from stratus.config.models.server import ServerConfig
from stratus.config.models.sessions import SessionsConfig
from stratus.config.models.weather import WeatherConfig

__all__ = [
    "APIConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "ServerConfig",
    "SessionsConfig",
    "TracingConfig",
    "WeatherConfig",
]
