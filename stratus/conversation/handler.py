"""Per-conversation MCP protocol handler.

A ConversationHandler owns the protocol state of exactly one session. Its
state only changes through the TRANSITIONS table; anything the table does
not allow is answered with a protocol error envelope. Errors never escape
`submit`: every accepted message produces either a response envelope or
None (for notifications).
"""

import asyncio
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stratus.conversation.enums import ConversationState, HandlerEvent
from stratus.conversation.signals import Signal
from stratus.observability.logging import get_logger
from stratus.observability.metrics import ERRORS, REQUEST_COUNT, TOOL_CALL_LATENCY
from stratus.protocol.errors import (
    AlreadyInitializedError,
    HandshakeIncompleteError,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    ProtocolError,
    SessionClosedError,
    StreamConflictError,
    describe_validation_error,
)
from stratus.protocol.mcp import (
    INITIALIZE,
    INITIALIZED_NOTIFICATION,
    PING,
    TOOLS_CALL,
    TOOLS_LIST,
    CallToolParams,
    CallToolResult,
    Implementation,
    InitializeParams,
    InitializeResult,
    ListToolsResult,
    TextContent,
    negotiate_protocol_version,
)
from stratus.protocol.messages import JsonRpcMessage, JsonRpcResponse, JsonRpcResult
from stratus.tools.base import ToolError, ToolRegistry

logger = get_logger(__name__)

S = ConversationState
E = HandlerEvent

TRANSITIONS: dict[tuple[ConversationState, HandlerEvent], ConversationState] = {
    (S.UNINITIALIZED, E.INITIALIZE): S.NEGOTIATING,
    (S.NEGOTIATING, E.ACKNOWLEDGE): S.READY,
    (S.READY, E.OPERATE): S.READY,
    (S.UNINITIALIZED, E.CLOSE): S.CLOSED,
    (S.NEGOTIATING, E.CLOSE): S.CLOSED,
    (S.READY, E.CLOSE): S.CLOSED,
}

_KNOWN_METHODS = frozenset({INITIALIZE, INITIALIZED_NOTIFICATION, PING, TOOLS_LIST, TOOLS_CALL})


class NegotiatedSession(BaseModel):
    """Capabilities agreed during the initialize handshake."""

    model_config = ConfigDict(frozen=True)

    protocol_version: str
    client_info: Implementation
    client_capabilities: dict[str, Any] = Field(default_factory=dict)
    tool_names: tuple[str, ...] = ()


class ConversationStream:
    """Async iterator over server-originated messages for one conversation.

    Only one stream may be open per conversation; `aclose` releases the slot.
    Iteration ends when the conversation closes.
    """

    def __init__(self, handler: "ConversationHandler") -> None:
        self._handler = handler
        self._closed = False

    @property
    def session_id(self) -> str:
        return self._handler.session_id

    def __aiter__(self) -> "ConversationStream":
        return self

    async def __anext__(self) -> JsonRpcMessage:
        if self._closed:
            raise StopAsyncIteration
        message = await self._handler._outbound.get()
        if message is None:
            await self.aclose()
            raise StopAsyncIteration
        self._handler._touch()
        return message

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            self._handler._release_stream(self)


class ConversationHandler:
    """Protocol state machine for a single MCP conversation.

    Lifecycle: UNINITIALIZED -> NEGOTIATING (initialize) -> READY
    (notifications/initialized) -> CLOSED (terminate or idle expiry).
    Subscribers to `closed` are awaited once when the handler closes.
    """

    def __init__(
        self,
        session_id: str,
        tools: ToolRegistry,
        server_info: Implementation,
        *,
        instructions: str | None = None,
        idle_timeout: float | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            session_id: Identifier assigned by the router
            tools: Tools this conversation may declare and invoke
            server_info: Name and version returned during initialization
            instructions: Optional usage hints returned during initialization
            idle_timeout: Seconds of inactivity after which the handler closes
                itself; None disables expiry
        """
        self.session_id = session_id
        self.closed = Signal("closed")
        self.close_reason: str | None = None
        self.negotiated: NegotiatedSession | None = None

        self._tools = tools
        self._server_info = server_info
        self._instructions = instructions
        self._idle_timeout = idle_timeout or None

        self._state = ConversationState.UNINITIALIZED
        self._outbound: asyncio.Queue[JsonRpcMessage | None] = asyncio.Queue()
        self._stream: ConversationStream | None = None
        self._inflight = 0
        self._last_activity = time.monotonic()
        self._watchdog: asyncio.Task[None] | None = None

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is ConversationState.CLOSED

    @property
    def stream_open(self) -> bool:
        return self._stream is not None

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _check(self, event: HandlerEvent) -> ConversationState:
        """Return the target state for event, or raise the matching rejection."""
        target = TRANSITIONS.get((self._state, event))
        if target is not None:
            return target
        if event is HandlerEvent.INITIALIZE:
            raise AlreadyInitializedError()
        if self._state is ConversationState.CLOSED:
            raise SessionClosedError()
        if event is HandlerEvent.ACKNOWLEDGE and self._state is ConversationState.READY:
            raise AlreadyInitializedError("Invalid Request: initialization already acknowledged")
        raise HandshakeIncompleteError()

    def _advance(self, event: HandlerEvent) -> None:
        target = self._check(event)
        if target is not self._state:
            logger.debug(
                "conversation_state_changed",
                session_id=self.session_id,
                from_state=self._state.value,
                to_state=target.value,
            )
        self._state = target

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def submit(self, message: JsonRpcMessage) -> JsonRpcResponse | None:
        """Process one inbound message.

        Returns:
            A result or error envelope for requests; None for accepted
            notifications. Rejected notifications yield an error envelope
            with a null id.
        """
        method_label = message.method if message.method in _KNOWN_METHODS else "other"
        self._touch()
        self._ensure_watchdog()
        self._inflight += 1
        try:
            result = await self._dispatch(message)
        except ProtocolError as e:
            REQUEST_COUNT.labels(method=method_label, outcome="error").inc()
            ERRORS.labels(error_type=e.code.name.lower()).inc()
            logger.info(
                "conversation_request_rejected",
                session_id=self.session_id,
                method=message.method,
                state=self._state.value,
                error_code=int(e.code),
                reason=e.message,
            )
            return e.to_envelope(message.id)
        except Exception as e:
            REQUEST_COUNT.labels(method=method_label, outcome="error").inc()
            ERRORS.labels(error_type="internal_error").inc()
            logger.exception(
                "conversation_request_failed",
                session_id=self.session_id,
                method=message.method,
                error=str(e),
            )
            return InternalError("Internal error").to_envelope(message.id)
        finally:
            self._inflight -= 1
            self._touch()

        REQUEST_COUNT.labels(method=method_label, outcome="ok").inc()
        if message.is_notification:
            return None
        return JsonRpcResult(id=message.id, result=result or {})

    def open_stream(self) -> ConversationStream:
        """Claim the conversation's outbound stream.

        Raises:
            SessionClosedError: If the conversation is closed
            StreamConflictError: If another stream is already open
        """
        if self.is_closed:
            raise SessionClosedError()
        if self._stream is not None:
            raise StreamConflictError()
        self._stream = ConversationStream(self)
        self._touch()
        logger.debug("conversation_stream_opened", session_id=self.session_id)
        return self._stream

    def notify(self, method: str, params: dict[str, Any] | None = None) -> bool:
        """Queue a server-originated notification for the open outbound stream.

        Returns False and drops the message when the conversation is closed
        or no stream is open to receive it.
        """
        if self.is_closed or self._stream is None:
            logger.debug(
                "conversation_notification_dropped",
                session_id=self.session_id,
                method=method,
            )
            return False
        self._outbound.put_nowait(JsonRpcMessage(jsonrpc="2.0", method=method, params=params))
        return True

    async def terminate(self) -> None:
        """Close the conversation. Safe to call more than once."""
        await self._close("terminated")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, message: JsonRpcMessage) -> dict[str, Any] | None:
        params = message.params or {}

        if message.method == INITIALIZE:
            if message.is_notification:
                raise InvalidRequestError("Invalid Request: initialize must carry an id")
            return self._initialize(params)

        if message.method == INITIALIZED_NOTIFICATION:
            self._advance(HandlerEvent.ACKNOWLEDGE)
            logger.info("conversation_ready", session_id=self.session_id)
            return None

        self._advance(HandlerEvent.OPERATE)

        if message.is_notification:
            # Client notifications (cancelled, roots changed, ...) need no reply
            logger.debug(
                "conversation_notification_ignored",
                session_id=self.session_id,
                method=message.method,
            )
            return None

        if message.method == PING:
            return {}
        if message.method == TOOLS_LIST:
            return self._list_tools()
        if message.method == TOOLS_CALL:
            return await self._call_tool(params)
        raise MethodNotFoundError(f"Method not found: {message.method}")

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        self._check(HandlerEvent.INITIALIZE)
        try:
            request = InitializeParams.model_validate(params)
        except ValidationError as e:
            raise InvalidParamsError(
                "Invalid params for initialize", data=describe_validation_error(e)
            ) from e

        protocol_version = negotiate_protocol_version(request.protocol_version)
        self.negotiated = NegotiatedSession(
            protocol_version=protocol_version,
            client_info=request.client_info,
            client_capabilities=request.capabilities,
            tool_names=tuple(self._tools.names()),
        )
        self._advance(HandlerEvent.INITIALIZE)

        logger.info(
            "conversation_initialized",
            session_id=self.session_id,
            client_name=request.client_info.name,
            client_version=request.client_info.version,
            requested_version=request.protocol_version,
            protocol_version=protocol_version,
        )

        return InitializeResult(
            protocol_version=protocol_version,
            capabilities={"tools": {"listChanged": False}},
            server_info=self._server_info,
            instructions=self._instructions,
        ).to_wire()

    def _declared_tool_names(self) -> tuple[str, ...]:
        return self.negotiated.tool_names if self.negotiated else ()

    def _list_tools(self) -> dict[str, Any]:
        declared = self._declared_tool_names()
        descriptors = [d for d in self._tools.descriptors() if d.name in declared]
        return ListToolsResult(tools=descriptors).to_wire()

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            call = CallToolParams.model_validate(params)
        except ValidationError as e:
            raise InvalidParamsError(
                "Invalid params for tools/call", data=describe_validation_error(e)
            ) from e

        tool = self._tools.get(call.name)
        if tool is None or call.name not in self._declared_tool_names():
            raise InvalidParamsError(f"Tool {call.name} not found")

        try:
            args = tool.validate(call.arguments)
        except ValidationError as e:
            raise InvalidParamsError(
                f"Invalid arguments for tool {call.name}", data=describe_validation_error(e)
            ) from e

        progress_token = (params.get("_meta") or {}).get("progressToken")
        self._report_progress(progress_token, 0)

        started = time.perf_counter()
        try:
            result = CallToolResult(content=await tool.run(args))
        except ToolError as e:
            logger.info(
                "tool_call_failed",
                session_id=self.session_id,
                tool=call.name,
                reason=e.message,
            )
            result = CallToolResult(content=[TextContent(text=e.message)], is_error=True)
        except Exception as e:
            logger.exception(
                "tool_call_crashed",
                session_id=self.session_id,
                tool=call.name,
                error=str(e),
            )
            result = CallToolResult(
                content=[TextContent(text=f"Tool {call.name} failed: {e}")],
                is_error=True,
            )
        finally:
            TOOL_CALL_LATENCY.labels(tool=call.name).observe(time.perf_counter() - started)

        if self.is_closed:
            logger.info("tool_result_discarded", session_id=self.session_id, tool=call.name)
            raise SessionClosedError()

        self._report_progress(progress_token, 1)
        return result.to_wire()

    def _report_progress(self, token: str | int | None, progress: int) -> None:
        if token is None:
            return
        self.notify(
            "notifications/progress",
            {"progressToken": token, "progress": progress, "total": 1},
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _touch(self) -> None:
        self._last_activity = time.monotonic()

    def _release_stream(self, stream: ConversationStream) -> None:
        if self._stream is stream:
            self._stream = None
            # Undelivered messages are not replayed to a later stream
            while not self._outbound.empty():
                self._outbound.get_nowait()
            self._touch()
            logger.debug("conversation_stream_released", session_id=self.session_id)

    def _ensure_watchdog(self) -> None:
        if self._idle_timeout is None or self._watchdog is not None or self.is_closed:
            return
        self._watchdog = asyncio.create_task(
            self._watch_idle(self._idle_timeout),
            name=f"idle-watchdog-{self.session_id}",
        )

    async def _watch_idle(self, timeout: float) -> None:
        while not self.is_closed:
            if self._stream is not None or self._inflight > 0:
                await asyncio.sleep(timeout)
                continue
            idle_for = time.monotonic() - self._last_activity
            if idle_for >= timeout:
                logger.info(
                    "conversation_idle_expired",
                    session_id=self.session_id,
                    idle_seconds=round(idle_for, 3),
                )
                await self._close("idle_timeout")
                return
            await asyncio.sleep(timeout - idle_for)

    async def _close(self, reason: str) -> None:
        if self.is_closed:
            return
        self._advance(HandlerEvent.CLOSE)
        self.close_reason = reason
        self._outbound.put_nowait(None)

        watchdog, self._watchdog = self._watchdog, None
        if watchdog is not None and watchdog is not asyncio.current_task():
            watchdog.cancel()

        logger.info("conversation_closed", session_id=self.session_id, reason=reason)
        await self.closed.emit(self)

