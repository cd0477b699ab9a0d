"""Plain-text rendering of NWS alerts and forecast periods."""

from stratus.weather.models import AlertFeature, ForecastPeriod


def format_number(value: int | float) -> str:
    """Render integral floats without a trailing `.0`."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_alert(feature: AlertFeature) -> str:
    props = feature.properties
    return "\n".join([
        f"Event: {props.event or 'Unknown'}",
        f"Area: {props.area_desc or 'Unknown'}",
        f"Severity: {props.severity or 'Unknown'}",
        f"Status: {props.status or 'Unknown'}",
        f"Headline: {props.headline or 'No headline'}",
        "---",
    ])


def format_period(period: ForecastPeriod) -> str:
    temperature = "Unknown" if period.temperature is None else format_number(period.temperature)
    return "\n".join([
        f"{period.name or 'Unknown'}:",
        f"Temperature: {temperature}°{period.temperature_unit or 'F'}",
        f"Wind: {period.wind_speed or 'Unknown'} {period.wind_direction or ''}",
        period.short_forecast or "No forecast available",
        "---",
    ])
