"""API route registration."""

from fastapi import FastAPI

from stratus.config import Settings
from stratus.observability.logging import get_logger

logger = get_logger(__name__)


def register_routes(app: FastAPI, settings: Settings) -> None:
    """Register all routes with the FastAPI application.

    Args:
        app: FastAPI application instance
        settings: Settings providing the MCP endpoint path
    """
    from stratus.api.routes.health import router as health_router
    from stratus.api.routes.mcp import router as mcp_router

    app.include_router(mcp_router, prefix=settings.api.mcp_path, tags=["MCP"])
    app.include_router(health_router, tags=["Health"])

    if settings.observability.metrics.enabled:
        from stratus.api.routes.health import get_metrics

        app.add_api_route(
            settings.observability.metrics.path,
            get_metrics,
            methods=["GET"],
            tags=["Health"],
        )

    logger.info(
        "routes_registered",
        mcp_path=settings.api.mcp_path,
        metrics_enabled=settings.observability.metrics.enabled,
    )
