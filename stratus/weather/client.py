"""Async client for the National Weather Service API."""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from stratus.observability.logging import get_logger
from stratus.weather.models import AlertsResponse, ForecastResponse, PointsResponse

logger = get_logger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class NWSClient:
    """Thin wrapper around httpx for api.weather.gov.

    All fetch methods return None on any failure (transport error, non-2xx
    status, undecodable or unexpected body) after logging it; callers turn
    None into a user-facing message.
    """

    def __init__(
        self,
        base_url: str = "https://api.weather.gov",
        user_agent: str = "weather-app/1.0",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: NWS API root
            user_agent: Identifying User-Agent, required by NWS policy
            timeout: Request timeout in seconds
            transport: Optional transport override (used in tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={
                "User-Agent": user_agent,
                "Accept": "application/geo+json",
            },
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def get_json(self, url: str) -> dict[str, Any] | None:
        """GET a URL and return the decoded JSON object, or None on failure."""
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("nws_request_failed", url=url, status_code=e.response.status_code)
            return None
        except httpx.HTTPError as e:
            logger.warning("nws_request_failed", url=url, error=str(e), error_type=type(e).__name__)
            return None
        except ValueError:
            logger.warning("nws_response_not_json", url=url)
            return None

        if not isinstance(data, dict):
            logger.warning("nws_response_unexpected_shape", url=url)
            return None
        return data

    async def _get_model(self, url: str, model: type[ResponseT]) -> ResponseT | None:
        data = await self.get_json(url)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning("nws_response_invalid", url=url, errors=e.error_count())
            return None

    async def get_alerts(self, state_code: str) -> AlertsResponse | None:
        return await self._get_model(f"{self.base_url}/alerts?area={state_code}", AlertsResponse)

    async def get_points(self, latitude: float, longitude: float) -> PointsResponse | None:
        url = f"{self.base_url}/points/{latitude:.4f},{longitude:.4f}"
        return await self._get_model(url, PointsResponse)

    async def get_forecast(self, forecast_url: str) -> ForecastResponse | None:
        return await self._get_model(forecast_url, ForecastResponse)

    async def aclose(self) -> None:
        await self._client.aclose()
