"""Fixtures shared across the Stratus test suite."""

from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest
import structlog
from sse_starlette import sse

from stratus.config import get_settings
from stratus.conversation import ConversationHandler
from stratus.protocol.mcp import Implementation
from stratus.tools import ToolRegistry
from tests.factories import CrashingTool, EchoTool, FailingTool, SlowTool


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Empty config/ directory under tmp_path."""
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Write {filename: toml text} into test_config_dir.

        mock_toml_files({"default.toml": "debug = false"})
    """

    def _write(files: dict[str, str]) -> None:
        for name, text in files.items():
            (test_config_dir / name).write_text(text)

    return _write


@pytest.fixture
def env_override(monkeypatch: pytest.MonkeyPatch):
    """Set environment variables for the duration of a with block.

        with env_override({"STRATUS_DEBUG": "true"}):
            ...
    """

    @contextmanager
    def _override(values: dict[str, str]) -> Iterator[None]:
        with monkeypatch.context() as patch:
            for key, value in values.items():
                patch.setenv(key, value)
            yield

    return _override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Drop logging configuration bound to per-test capture streams."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def reset_sse_exit_event() -> None:
    """sse-starlette caches its shutdown event on the first event loop it sees."""
    app_status = getattr(sse, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


@pytest.fixture
def slow_tool() -> SlowTool:
    return SlowTool()


@pytest.fixture
def tool_registry(echo_tool: EchoTool, slow_tool: SlowTool) -> ToolRegistry:
    """Registry with deterministic fake tools."""
    return ToolRegistry([echo_tool, FailingTool(), CrashingTool(), slow_tool])


@pytest.fixture
def server_info() -> Implementation:
    return Implementation(name="test-server", version="0.0.1")


@pytest.fixture
def handler_factory(
    tool_registry: ToolRegistry, server_info: Implementation
) -> Callable[[str], ConversationHandler]:
    """Factory building handlers without idle expiry."""

    def _factory(session_id: str) -> ConversationHandler:
        return ConversationHandler(session_id, tool_registry, server_info)

    return _factory
