"""Logging, tracing and metrics settings."""

from typing import Literal

from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["json", "console"]


class LoggingConfig(BaseModel):
    """structlog output settings applied by the app factory."""

    level: LogLevel = Field(default="INFO", description="Minimum level emitted")
    format: LogFormat = Field(
        default="json",
        description="json for log shippers, console for local development",
    )
    redact_pii: bool = Field(
        default=True,
        description="Mask secrets, tokens and e-mail addresses in log events",
    )


class TracingConfig(BaseModel):
    enabled: bool = Field(default=False, description="Instrument FastAPI with OpenTelemetry")
    service_name: str = Field(default="stratus", description="service.name reported on spans")


class MetricsConfig(BaseModel):
    enabled: bool = Field(default=True, description="Serve Prometheus metrics")
    path: str = Field(default="/metrics", description="Route the metrics are served on")


class ObservabilityConfig(BaseModel):
    """Groups the [observability.*] tables."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
