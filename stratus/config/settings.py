"""The Settings root model and its TOML-backed source."""

from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from stratus.config.models.api import APIConfig
from stratus.config.models.observability import LogLevel, ObservabilityConfig
from stratus.config.models.server import ServerConfig
from stratus.config.models.sessions import SessionsConfig
from stratus.config.models.weather import WeatherConfig

# Merged TOML layers, installed by get_settings() before Settings() is built
_toml_layers: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    global _toml_layers
    _toml_layers = dict(config)


class TomlLayersSource(PydanticBaseSettingsSource):
    """Feeds the merged config/*.toml values to pydantic-settings."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_layers.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return dict(_toml_layers)


class Settings(BaseSettings):
    """Everything Stratus reads at startup, one nested model per TOML table.

    Environment variables use the STRATUS_ prefix and `__` between levels,
    e.g. STRATUS_SESSIONS__IDLE_TIMEOUT_SECONDS=60.
    """

    model_config = SettingsConfigDict(
        env_prefix="STRATUS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="stratus", description="Name bound into log events")
    debug: bool = Field(default=False, description="Verbose errors and logging")
    log_level: LogLevel = Field(default="INFO", description="Level for uvicorn's own loggers")

    api: APIConfig = Field(default_factory=APIConfig, description="Bind address, MCP path and CORS")
    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Identity advertised in the initialize result",
    )
    sessions: SessionsConfig = Field(
        default_factory=SessionsConfig,
        description="Session ID adoption, idle expiry and shutdown bounds",
    )
    weather: WeatherConfig = Field(
        default_factory=WeatherConfig,
        description="National Weather Service endpoint and request headers",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="structlog, OpenTelemetry and Prometheus switches",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Constructor kwargs beat STRATUS_* env vars, which beat .env, which beats TOML."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlLayersSource(settings_cls),
        )
