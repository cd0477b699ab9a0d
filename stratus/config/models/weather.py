"""National Weather Service client configuration."""

from pydantic import BaseModel, Field


class WeatherConfig(BaseModel):
    """Upstream NWS API settings."""

    base_url: str = Field(default="https://api.weather.gov", description="NWS API base URL")
    user_agent: str = Field(
        default="weather-app/1.0",
        description="User-Agent sent to the NWS API, which requires one",
    )
    timeout_seconds: float = Field(default=30.0, gt=0.0, description="Request timeout")
