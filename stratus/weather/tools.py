"""get-alerts and get-forecast tools backed by the NWS API."""

from pydantic import BaseModel, Field

from stratus.protocol.mcp import ContentBlock, TextContent
from stratus.tools.base import Tool, ToolError
from stratus.weather.client import NWSClient
from stratus.weather.formatting import format_alert, format_number, format_period


class AlertsArgs(BaseModel):
    state: str = Field(
        ...,
        min_length=2,
        max_length=2,
        description="Two-letter state code (e.g. CA, NY)",
    )


class ForecastArgs(BaseModel):
    latitude: float = Field(..., ge=-90, le=90, description="Latitude of the location")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude of the location")


class GetAlertsTool(Tool):
    """Active NWS alerts for a US state."""

    name = "get-alerts"
    description = "Get weather alerts for a state"
    args_model = AlertsArgs

    def __init__(self, client: NWSClient):
        self._client = client

    async def run(self, args: AlertsArgs) -> list[ContentBlock]:
        state_code = args.state.upper()
        alerts = await self._client.get_alerts(state_code)
        if alerts is None:
            raise ToolError("Failed to retrieve alerts data")

        if not alerts.features:
            return [TextContent(text=f"No active alerts for {state_code}")]

        formatted = "\n".join(format_alert(feature) for feature in alerts.features)
        return [TextContent(text=f"Active alerts for {state_code}:\n\n{formatted}")]


class GetForecastTool(Tool):
    """Point forecast for a latitude/longitude, resolved through the NWS grid."""

    name = "get-forecast"
    description = "Get weather forecast for a location"
    args_model = ForecastArgs

    def __init__(self, client: NWSClient):
        self._client = client

    async def run(self, args: ForecastArgs) -> list[ContentBlock]:
        latitude = format_number(args.latitude)
        longitude = format_number(args.longitude)

        points = await self._client.get_points(args.latitude, args.longitude)
        if points is None:
            raise ToolError(
                f"Failed to retrieve grid point data for coordinates: {latitude}, {longitude}. "
                "This location may not be supported by the NWS API "
                "(only US locations are supported)."
            )

        forecast_url = points.properties.forecast
        if not forecast_url:
            raise ToolError("Failed to get forecast URL from grid point data")

        forecast = await self._client.get_forecast(forecast_url)
        if forecast is None:
            raise ToolError("Failed to retrieve forecast data")

        periods = forecast.properties.periods
        if not periods:
            return [TextContent(text="No forecast periods available")]

        formatted = "\n".join(format_period(period) for period in periods)
        return [TextContent(text=f"Forecast for {latitude}, {longitude}:\n\n{formatted}")]


def build_weather_tools(client: NWSClient) -> list[Tool]:
    return [GetAlertsTool(client), GetForecastTool(client)]
