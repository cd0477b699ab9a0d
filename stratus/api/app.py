"""Builds the Stratus ASGI app: MCP routes, health, metrics and error rendering."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from stratus import __version__
from stratus.api.dependencies import reset_dependencies
from stratus.api.routes import register_routes
from stratus.config import Settings, get_settings
from stratus.observability.logging import get_logger, setup_logging
from stratus.observability.metrics import ERRORS
from stratus.observability.middleware import RequestContextMiddleware
from stratus.protocol.errors import InternalError, ProtocolError
from stratus.protocol.headers import SESSION_ID_HEADER

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Terminate every conversation and release the NWS client on shutdown."""
    logger.info("app_started")
    yield
    logger.info("app_shutting_down")
    await reset_dependencies()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Assemble the app for the given settings.

    Logging is configured here, so the factory is also the process entry
    point for log setup. CORS exposes Mcp-Session-Id so browser clients can
    read the assigned session, and FastAPI is instrumented with
    OpenTelemetry only when tracing is enabled.

    Args:
        settings: Settings to use; loaded from configuration when omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_pii=log_config.redact_pii,
    )

    app = FastAPI(
        title="Stratus",
        description="Session-scoped MCP server offering National Weather Service tools",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[SESSION_ID_HEADER],
    )

    app.add_middleware(RequestContextMiddleware)

    _register_exception_handlers(app)

    register_routes(app, settings)

    if settings.observability.tracing.enabled:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("opentelemetry_instrumentation_enabled")

    logger.info(
        "app_created",
        debug=settings.debug,
        server_name=settings.server.name,
        mcp_path=settings.api.mcp_path,
    )

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    """Render protocol errors raised outside a conversation as JSON-RPC envelopes."""

    @app.exception_handler(ProtocolError)
    async def protocol_error_handler(request: Request, exc: ProtocolError) -> JSONResponse:
        ERRORS.labels(error_type=exc.code.name.lower()).inc()
        logger.warning(
            "protocol_error",
            error_code=int(exc.code),
            message=exc.message,
            method=request.method,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_envelope().to_wire(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        ERRORS.labels(error_type="internal_error").inc()
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content=InternalError("Internal server error").to_envelope().to_wire(),
        )

    logger.debug("exception_handlers_registered")


# Imported by uvicorn as stratus.api.app:app
app = create_app()
