"""Health check and metrics endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from stratus.api.dependencies import SessionRouterDep, SettingsDep, ToolRegistryDep
from stratus.api.models.health import HealthResponse
from stratus.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: SettingsDep,
    session_router: SessionRouterDep,
    tools: ToolRegistryDep,
) -> HealthResponse:
    """Check service health status.

    Reports the server version, the number of registered conversations and
    the tools each new conversation is offered.
    """
    logger.debug("health_check_request")

    return HealthResponse(
        status="healthy",
        version=settings.server.version,
        active_sessions=session_router.session_count,
        tools=tools.names(),
        timestamp=datetime.now(UTC),
    )


async def get_metrics() -> Response:
    """Get Prometheus metrics in text format for scraping."""
    logger.debug("metrics_request")

    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
