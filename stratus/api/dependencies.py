"""Dependency injection for API routes.

Provides the shared NWS client, tool registry and session router. Instances
are created once per process and can be overridden in tests through
`app.dependency_overrides`.
"""

from typing import Annotated

from fastapi import Depends

from stratus.config import Settings, get_settings
from stratus.conversation import ConversationHandler, HandlerFactory, SessionRouter
from stratus.observability.logging import get_logger
from stratus.protocol.mcp import Implementation
from stratus.tools import ToolRegistry
from stratus.weather import NWSClient, build_weather_tools

logger = get_logger(__name__)

_nws_client: NWSClient | None = None
_tool_registry: ToolRegistry | None = None
_session_router: SessionRouter | None = None


def get_nws_client(settings: Annotated[Settings, Depends(get_settings)]) -> NWSClient:
    """Get the shared NWS API client."""
    global _nws_client
    if _nws_client is None:
        _nws_client = NWSClient(
            base_url=settings.weather.base_url,
            user_agent=settings.weather.user_agent,
            timeout=settings.weather.timeout_seconds,
        )
        logger.info("nws_client_initialized", base_url=settings.weather.base_url)
    return _nws_client


def get_tool_registry(
    client: Annotated[NWSClient, Depends(get_nws_client)],
) -> ToolRegistry:
    """Get the registry of tools offered to every conversation."""
    global _tool_registry
    if _tool_registry is None:
        _tool_registry = ToolRegistry(build_weather_tools(client))
        logger.info("tool_registry_initialized", tools=_tool_registry.names())
    return _tool_registry


def create_handler_factory(settings: Settings, tools: ToolRegistry) -> HandlerFactory:
    """Build the factory the router uses to create one handler per session."""
    server_info = Implementation(name=settings.server.name, version=settings.server.version)
    idle_timeout = settings.sessions.idle_timeout_seconds or None

    def factory(session_id: str) -> ConversationHandler:
        return ConversationHandler(
            session_id,
            tools,
            server_info,
            instructions=settings.server.instructions,
            idle_timeout=idle_timeout,
        )

    return factory


def get_session_router(
    settings: Annotated[Settings, Depends(get_settings)],
    tools: Annotated[ToolRegistry, Depends(get_tool_registry)],
) -> SessionRouter:
    """Get the process-wide session router."""
    global _session_router
    if _session_router is None:
        _session_router = SessionRouter(
            create_handler_factory(settings, tools),
            accept_client_session_ids=settings.sessions.accept_client_session_ids,
            shutdown_timeout=settings.sessions.shutdown_timeout_seconds,
            tombstone_limit=settings.sessions.tombstone_limit,
        )
        logger.info(
            "session_router_initialized",
            idle_timeout_seconds=settings.sessions.idle_timeout_seconds,
            accept_client_session_ids=settings.sessions.accept_client_session_ids,
        )
    return _session_router


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
NWSClientDep = Annotated[NWSClient, Depends(get_nws_client)]
ToolRegistryDep = Annotated[ToolRegistry, Depends(get_tool_registry)]
SessionRouterDep = Annotated[SessionRouter, Depends(get_session_router)]


async def reset_dependencies() -> None:
    """Shut down and forget every shared instance.

    Terminates all live conversations and closes the NWS client. Called on
    application shutdown and between tests.
    """
    global _nws_client, _tool_registry, _session_router

    if _session_router is not None:
        await _session_router.shutdown()
        _session_router = None

    if _nws_client is not None:
        await _nws_client.aclose()
        _nws_client = None

    _tool_registry = None
    get_settings.cache_clear()
