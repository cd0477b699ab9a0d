"""Subset of the NWS GeoJSON responses consumed by the weather tools.

Every field is optional: the API omits properties freely and the
formatters substitute placeholders.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class NWSModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AlertProperties(NWSModel):
    event: str | None = None
    area_desc: str | None = None
    severity: str | None = None
    status: str | None = None
    headline: str | None = None


class AlertFeature(NWSModel):
    properties: AlertProperties = Field(default_factory=AlertProperties)


class AlertsResponse(NWSModel):
    features: list[AlertFeature] = Field(default_factory=list)


class PointsProperties(NWSModel):
    forecast: str | None = None


class PointsResponse(NWSModel):
    properties: PointsProperties = Field(default_factory=PointsProperties)


class ForecastPeriod(NWSModel):
    name: str | None = None
    temperature: int | float | None = None
    temperature_unit: str | None = None
    wind_speed: str | None = None
    wind_direction: str | None = None
    short_forecast: str | None = None


class ForecastProperties(NWSModel):
    periods: list[ForecastPeriod] = Field(default_factory=list)


class ForecastResponse(NWSModel):
    properties: ForecastProperties = Field(default_factory=ForecastProperties)
