"""Tests for SessionRouter."""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest
from prometheus_client import REGISTRY

from stratus.conversation import (
    ConversationHandler,
    ConversationState,
    RecordStatus,
    SessionRouter,
    TerminateAck,
)
from stratus.protocol.errors import (
    ErrorCode,
    InvalidParamsError,
    NotInitializedError,
    SessionNotFoundError,
    StreamConflictError,
)
from stratus.protocol.mcp import Implementation
from stratus.protocol.messages import JsonRpcError, JsonRpcMessage, JsonRpcResponse, JsonRpcResult
from stratus.tools import ToolRegistry
from stratus.weather import NWSClient, build_weather_tools
from tests.factories import MessageFactory

HandlerFactory = Callable[[str], ConversationHandler]


@pytest.fixture
def router(handler_factory: HandlerFactory) -> SessionRouter:
    return SessionRouter(handler_factory)


async def start_session(router: SessionRouter, session_id: str | None = None) -> str:
    """Run the handshake and return the assigned session ID."""
    result = await router.handle_submit(session_id, MessageFactory.initialize())
    await router.handle_submit(result.session_id, MessageFactory.initialized())
    return result.session_id


class TestSubmit:
    """Tests for handle_submit classification."""

    @pytest.mark.asyncio
    async def test_initialize_creates_session(self, router: SessionRouter) -> None:
        result = await router.handle_submit(None, MessageFactory.initialize())

        assert isinstance(result.response, JsonRpcResult)
        assert result.session_id in router.registry
        assert router.session_count == 1
        assert router.active_session_ids() == [result.session_id]

    @pytest.mark.asyncio
    async def test_minted_ids_are_unique(self, router: SessionRouter) -> None:
        first = await router.handle_submit(None, MessageFactory.initialize())
        second = await router.handle_submit(None, MessageFactory.initialize())

        assert first.session_id != second.session_id
        assert router.session_count == 2

    @pytest.mark.asyncio
    async def test_follow_up_reaches_same_handler(self, router: SessionRouter) -> None:
        session_id = await start_session(router)

        record = router.get(session_id)
        assert record is not None
        assert record.handler.state is ConversationState.READY

    @pytest.mark.asyncio
    async def test_no_session_no_service(self, router: SessionRouter) -> None:
        """Non-initialize messages without a session ID are rejected."""
        with pytest.raises(NotInitializedError):
            await router.handle_submit(None, MessageFactory.request("tools/list"))

        assert router.session_count == 0

    @pytest.mark.asyncio
    async def test_unknown_session_rejected(self, router: SessionRouter) -> None:
        with pytest.raises(SessionNotFoundError):
            await router.handle_submit("nope", MessageFactory.request("tools/list"))

        assert router.session_count == 0

    @pytest.mark.asyncio
    async def test_initialize_notification_does_not_create(self, router: SessionRouter) -> None:
        with pytest.raises(NotInitializedError):
            await router.handle_submit(None, MessageFactory.notification("initialize"))

        assert router.session_count == 0

    @pytest.mark.asyncio
    async def test_malformed_initialize_creates_nothing(self, router: SessionRouter) -> None:
        before = REGISTRY.get_sample_value("stratus_sessions_created_total") or 0.0

        for request_id in range(3):
            with pytest.raises(InvalidParamsError):
                await router.handle_submit(
                    None, MessageFactory.request("initialize", {}, id=request_id)
                )
        with pytest.raises(InvalidParamsError):
            await router.handle_submit(
                "client-chosen",
                MessageFactory.request("initialize", {"protocolVersion": "2025-06-18"}),
            )

        assert router.session_count == 0
        assert "client-chosen" not in router.registry
        assert REGISTRY.get_sample_value("stratus_sessions_created_total") == before

    @pytest.mark.asyncio
    async def test_initialize_on_existing_session_is_delegated(
        self, router: SessionRouter
    ) -> None:
        session_id = await start_session(router)

        result = await router.handle_submit(session_id, MessageFactory.initialize(id=3))

        assert result.session_id == session_id
        assert isinstance(result.response, JsonRpcError)
        assert result.response.error.code == ErrorCode.ALREADY_INITIALIZED
        assert router.session_count == 1

    @pytest.mark.asyncio
    async def test_notification_returns_no_response(self, router: SessionRouter) -> None:
        result = await router.handle_submit(None, MessageFactory.initialize())
        ack = await router.handle_submit(result.session_id, MessageFactory.initialized())

        assert ack.response is None
        assert ack.session_id == result.session_id

    @pytest.mark.asyncio
    async def test_handler_failure_becomes_internal_error(
        self, handler_factory: HandlerFactory
    ) -> None:
        def broken_factory(session_id: str) -> ConversationHandler:
            handler = handler_factory(session_id)
            failing = AsyncMock(side_effect=RuntimeError("boom"))
            handler.submit = failing  # type: ignore[method-assign]
            return handler

        router = SessionRouter(broken_factory)
        result = await router.handle_submit(None, MessageFactory.initialize(id=4))

        assert isinstance(result.response, JsonRpcError)
        assert result.response.id == 4
        assert result.response.error.code == ErrorCode.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, router: SessionRouter) -> None:
        before = REGISTRY.get_sample_value("stratus_sessions_created_total") or 0.0

        await router.handle_submit(None, MessageFactory.initialize())

        assert REGISTRY.get_sample_value("stratus_sessions_created_total") == before + 1
        assert REGISTRY.get_sample_value("stratus_active_sessions") == 1


class TestClientSessionIds:
    """Tests for adopting client-supplied session IDs on initialize."""

    @pytest.mark.asyncio
    async def test_unused_id_adopted(self, router: SessionRouter) -> None:
        result = await router.handle_submit("client-chosen", MessageFactory.initialize())

        assert result.session_id == "client-chosen"

    @pytest.mark.asyncio
    async def test_adoption_disabled(self, handler_factory: HandlerFactory) -> None:
        router = SessionRouter(handler_factory, accept_client_session_ids=False)

        result = await router.handle_submit("client-chosen", MessageFactory.initialize())

        assert result.session_id != "client-chosen"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("session_id", ["has space", "tab\tbad", "x" * 300, "é"])
    async def test_malformed_id_replaced(self, router: SessionRouter, session_id: str) -> None:
        result = await router.handle_submit(session_id, MessageFactory.initialize())

        assert result.session_id != session_id

    @pytest.mark.asyncio
    async def test_terminated_id_not_reused(self, router: SessionRouter) -> None:
        session_id = await start_session(router, "reused")
        await router.handle_terminate(session_id)

        result = await router.handle_submit("reused", MessageFactory.initialize())

        assert result.session_id != "reused"

    @pytest.mark.asyncio
    async def test_concurrent_initialize_creates_one_session(
        self, handler_factory: HandlerFactory
    ) -> None:
        """Two initializes racing on one ID produce one handler."""
        built: list[str] = []

        def counting_factory(session_id: str) -> ConversationHandler:
            built.append(session_id)
            return handler_factory(session_id)

        router = SessionRouter(counting_factory)
        results = await asyncio.gather(
            router.handle_submit("shared", MessageFactory.initialize(id=1)),
            router.handle_submit("shared", MessageFactory.initialize(id=2)),
        )

        assert built == ["shared"]
        assert router.session_count == 1
        assert {r.session_id for r in results} == {"shared"}
        outcomes = sorted(type(r.response).__name__ for r in results)
        assert outcomes == ["JsonRpcError", "JsonRpcResult"]

    @pytest.mark.asyncio
    async def test_follow_up_during_creation_reaches_new_handler(
        self, handler_factory: HandlerFactory
    ) -> None:
        """The record is registered before the handler processes initialize."""
        built: list[str] = []
        entered = asyncio.Event()
        release = asyncio.Event()

        def suspending_factory(session_id: str) -> ConversationHandler:
            built.append(session_id)
            handler = handler_factory(session_id)
            submit = handler.submit

            async def submit_after_release(message: JsonRpcMessage) -> JsonRpcResponse | None:
                if message.method == "initialize":
                    entered.set()
                    await release.wait()
                return await submit(message)

            handler.submit = submit_after_release  # type: ignore[method-assign]
            return handler

        router = SessionRouter(suspending_factory)
        creating = asyncio.create_task(
            router.handle_submit("early", MessageFactory.initialize())
        )
        await asyncio.wait_for(entered.wait(), timeout=1)

        follow_up = await router.handle_submit(
            "early", MessageFactory.request("tools/list", id=2)
        )

        assert follow_up.session_id == "early"
        assert isinstance(follow_up.response, JsonRpcError)
        assert follow_up.response.error.code == ErrorCode.HANDSHAKE_INCOMPLETE

        release.set()
        created = await asyncio.wait_for(creating, timeout=1)
        assert isinstance(created.response, JsonRpcResult)

        ack = await router.handle_submit("early", MessageFactory.initialized())
        assert ack.response is None

        record = router.get("early")
        assert record is not None
        assert record.handler.state is ConversationState.READY
        assert built == ["early"]
        assert router.session_count == 1


class TestIsolation:
    @pytest.mark.asyncio
    async def test_sessions_progress_independently(self, router: SessionRouter) -> None:
        ready_id = await start_session(router)
        pending = await router.handle_submit(None, MessageFactory.initialize())

        response = (await router.handle_submit(
            pending.session_id, MessageFactory.request("tools/list")
        )).response
        ready_response = (await router.handle_submit(
            ready_id, MessageFactory.request("tools/list")
        )).response

        assert isinstance(response, JsonRpcError)
        assert response.error.code == ErrorCode.HANDSHAKE_INCOMPLETE
        assert isinstance(ready_response, JsonRpcResult)


class TestStreamRead:
    @pytest.mark.asyncio
    async def test_opens_stream(self, router: SessionRouter) -> None:
        session_id = await start_session(router)

        stream = await router.handle_stream_read(session_id)

        assert stream.session_id == session_id
        with pytest.raises(StreamConflictError):
            await router.handle_stream_read(session_id)
        await stream.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("session_id", [None, "", "unknown"])
    async def test_requires_known_session(
        self, router: SessionRouter, session_id: str | None
    ) -> None:
        with pytest.raises(SessionNotFoundError):
            await router.handle_stream_read(session_id)


class TestTerminate:
    """Tests for idempotent termination."""

    @pytest.mark.asyncio
    async def test_terminate_removes_session(self, router: SessionRouter) -> None:
        session_id = await start_session(router)
        handler = router.get(session_id).handler

        ack = await router.handle_terminate(session_id)

        assert ack == TerminateAck(session_id=session_id, terminated=True)
        assert session_id not in router.registry
        assert handler.state is ConversationState.CLOSED

    @pytest.mark.asyncio
    async def test_repeat_terminate_returns_same_ack(self, router: SessionRouter) -> None:
        session_id = await start_session(router)

        first = await router.handle_terminate(session_id)
        second = await router.handle_terminate(session_id)

        assert first == second

    @pytest.mark.asyncio
    async def test_concurrent_terminates(self, router: SessionRouter) -> None:
        session_id = await start_session(router)

        acks = await asyncio.gather(
            router.handle_terminate(session_id),
            router.handle_terminate(session_id),
        )

        assert all(ack.terminated for ack in acks)
        assert router.session_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("session_id", [None, "never-existed"])
    async def test_unknown_session(self, router: SessionRouter, session_id: str | None) -> None:
        with pytest.raises(SessionNotFoundError):
            await router.handle_terminate(session_id)

    @pytest.mark.asyncio
    async def test_messages_after_terminate(self, router: SessionRouter) -> None:
        session_id = await start_session(router)
        await router.handle_terminate(session_id)

        with pytest.raises(SessionNotFoundError):
            await router.handle_submit(session_id, MessageFactory.request("tools/list"))
        with pytest.raises(SessionNotFoundError):
            await router.handle_stream_read(session_id)

    @pytest.mark.asyncio
    async def test_tombstones_bounded(self, handler_factory: HandlerFactory) -> None:
        router = SessionRouter(handler_factory, tombstone_limit=1)
        old = await start_session(router)
        new = await start_session(router)
        await router.handle_terminate(old)
        await router.handle_terminate(new)

        assert (await router.handle_terminate(new)).session_id == new
        with pytest.raises(SessionNotFoundError):
            await router.handle_terminate(old)

    @pytest.mark.asyncio
    async def test_terminating_record_not_served(self, router: SessionRouter) -> None:
        session_id = await start_session(router)
        router.get(session_id).status = RecordStatus.CLOSING

        with pytest.raises(SessionNotFoundError):
            await router.handle_submit(session_id, MessageFactory.request("ping"))
        assert (await router.handle_terminate(session_id)).terminated is True


class TestHandlerOriginatedClose:
    @pytest.mark.asyncio
    async def test_idle_expiry_removes_record(
        self, tool_registry: ToolRegistry, server_info: Implementation
    ) -> None:
        router = SessionRouter(
            lambda sid: ConversationHandler(sid, tool_registry, server_info, idle_timeout=0.05)
        )
        session_id = await start_session(router)

        await asyncio.sleep(0.3)

        assert session_id not in router.registry
        assert (await router.handle_terminate(session_id)).terminated is True


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_closes_everything(self, router: SessionRouter) -> None:
        session_ids = [await start_session(router) for _ in range(3)]
        handlers = [router.get(sid).handler for sid in session_ids]

        await router.shutdown()

        assert router.session_count == 0
        assert all(h.state is ConversationState.CLOSED for h in handlers)
        assert REGISTRY.get_sample_value("stratus_active_sessions") == 0

    @pytest.mark.asyncio
    async def test_shutdown_bounded_by_timeout(self, handler_factory: HandlerFactory) -> None:
        """A handler that never finishes closing does not block shutdown."""

        def stuck_factory(session_id: str) -> ConversationHandler:
            handler = handler_factory(session_id)

            async def never_finishes() -> None:
                await asyncio.Event().wait()

            handler.terminate = never_finishes  # type: ignore[method-assign]
            return handler

        router = SessionRouter(stuck_factory, shutdown_timeout=0.05)
        await start_session(router)
        second = await router.handle_submit(None, MessageFactory.initialize())

        await asyncio.wait_for(router.shutdown(), timeout=2)

        assert router.session_count == 0
        assert second.session_id not in router.registry


class TestExampleScenario:
    """initialize -> initialized -> get-alerts -> terminate -> invalid session."""

    @pytest.mark.asyncio
    async def test_weather_conversation(self, server_info: Implementation) -> None:
        def nws(request: httpx.Request) -> httpx.Response:
            assert request.url.params["area"] == "CA"
            return httpx.Response(200, json={"features": []})

        client = NWSClient(transport=httpx.MockTransport(nws))
        tools = ToolRegistry(build_weather_tools(client))
        router = SessionRouter(lambda sid: ConversationHandler(sid, tools, server_info))

        try:
            init = await router.handle_submit(None, MessageFactory.initialize())
            session_id = init.session_id
            await router.handle_submit(session_id, MessageFactory.initialized())

            call = await router.handle_submit(
                session_id, MessageFactory.call_tool("get-alerts", {"state": "CA"})
            )
            assert call.response.result["content"] == [
                {"type": "text", "text": "No active alerts for CA"}
            ]

            ack = await router.handle_terminate(session_id)
            assert ack.terminated is True

            with pytest.raises(SessionNotFoundError, match="Invalid session"):
                await router.handle_submit(session_id, MessageFactory.request("tools/list"))
        finally:
            await client.aclose()
