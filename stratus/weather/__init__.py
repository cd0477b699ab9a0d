"""National Weather Service tools: active alerts and point forecasts."""

from stratus.weather.client import NWSClient
from stratus.weather.tools import GetAlertsTool, GetForecastTool, build_weather_tools

__all__ = ["GetAlertsTool", "GetForecastTool", "NWSClient", "build_weather_tools"]
