"""Fixtures for API route tests."""

import pytest
from fastapi import FastAPI

from stratus.api.app import create_app
from stratus.api.dependencies import get_session_router, get_settings, get_tool_registry
from stratus.config import Settings
from stratus.config.settings import set_toml_config
from stratus.conversation import SessionRouter
from stratus.tools import ToolRegistry


@pytest.fixture
def settings() -> Settings:
    """Settings built from model defaults only."""
    set_toml_config({})
    return Settings(observability={"logging": {"level": "WARNING"}})


@pytest.fixture
def session_router(handler_factory) -> SessionRouter:
    return SessionRouter(handler_factory)


@pytest.fixture
def app(settings: Settings, session_router: SessionRouter, tool_registry: ToolRegistry) -> FastAPI:
    """Create test FastAPI app with in-process dependencies."""
    app = create_app(settings)

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_session_router] = lambda: session_router
    app.dependency_overrides[get_tool_registry] = lambda: tool_registry

    return app
