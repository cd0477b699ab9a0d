"""Session router: maps session identifiers to conversation handlers.

Every inbound message is classified as resuming an existing conversation,
starting a new one (an `initialize` request), or invalid. New handlers are
registered before they see the initialize body, so a follow-up carrying the
same identifier always finds the record.
"""

import asyncio
import re
from collections import OrderedDict
from collections.abc import Callable
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from stratus.conversation.enums import RecordStatus
from stratus.conversation.handler import ConversationHandler, ConversationStream
from stratus.conversation.registry import ConversationRecord, SessionRegistry
from stratus.observability.logging import get_logger
from stratus.observability.metrics import ACTIVE_SESSIONS, ERRORS, SESSIONS_CLOSED, SESSIONS_CREATED
from stratus.protocol.errors import (
    InternalError,
    InvalidParamsError,
    NotInitializedError,
    SessionNotFoundError,
    describe_validation_error,
)
from stratus.protocol.mcp import InitializeParams
from stratus.protocol.messages import JsonRpcMessage, JsonRpcResponse, is_initialize_request

logger = get_logger(__name__)

HandlerFactory = Callable[[str], ConversationHandler]

# Session IDs travel in an HTTP header and must be visible ASCII
_SESSION_ID_PATTERN = re.compile(r"[\x21-\x7e]{1,256}")


class SubmitResult(BaseModel):
    """Outcome of handle_submit: the session that served the message and its reply."""

    session_id: str
    response: JsonRpcResponse | None = None


class TerminateAck(BaseModel):
    session_id: str
    terminated: bool = True


class SessionRouter:
    """Owns the session registry and dispatches submit, stream and terminate.

    The router is the only component that mutates the registry or writes a
    record's status. Handlers report their own closure through their
    `closed` signal, to which the router subscribes once at creation.
    """

    def __init__(
        self,
        handler_factory: HandlerFactory,
        *,
        registry: SessionRegistry | None = None,
        accept_client_session_ids: bool = True,
        shutdown_timeout: float = 10.0,
        tombstone_limit: int = 1024,
    ) -> None:
        """Initialize the router.

        Args:
            handler_factory: Builds a ConversationHandler for a session ID
            registry: Registry to own; a fresh one is created if omitted
            accept_client_session_ids: Adopt an unused client-supplied ID on
                initialize instead of minting one
            shutdown_timeout: Per-session bound on termination during shutdown
            tombstone_limit: Number of terminated IDs remembered so repeated
                terminate calls return the same acknowledgment
        """
        self._handler_factory = handler_factory
        self._registry = registry if registry is not None else SessionRegistry()
        self._accept_client_session_ids = accept_client_session_ids
        self._shutdown_timeout = shutdown_timeout
        self._tombstone_limit = tombstone_limit
        self._tombstones: OrderedDict[str, TerminateAck] = OrderedDict()
        self._shutting_down = False

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def get(self, session_id: str) -> ConversationRecord | None:
        return self._registry.get(session_id)

    def active_session_ids(self) -> list[str]:
        return [r.session_id for r in self._registry.snapshot() if r.status is RecordStatus.ACTIVE]

    @property
    def session_count(self) -> int:
        return len(self._registry)

    def __len__(self) -> int:
        return len(self._registry)

    # ------------------------------------------------------------------
    # Transport operations
    # ------------------------------------------------------------------

    async def handle_submit(
        self,
        session_id: str | None,
        message: JsonRpcMessage,
    ) -> SubmitResult:
        """Route a submitted message to its conversation, creating one for initialize.

        Raises:
            SessionNotFoundError: A session ID was given, matched nothing, and
                the message cannot start a conversation
            NotInitializedError: No session ID and the message is not initialize
            InvalidParamsError: An initialize request whose params cannot start
                a conversation; nothing is registered
        """
        record = self._registry.get(session_id) if session_id else None
        if record is not None and record.status is RecordStatus.ACTIVE:
            response = await self._delegate(record, message)
            return SubmitResult(session_id=record.session_id, response=response)

        if not is_initialize_request(message):
            logger.info(
                "submit_rejected",
                session_id=session_id,
                method=message.method,
                reason="unknown_session" if session_id else "not_initialized",
            )
            if session_id:
                raise SessionNotFoundError()
            raise NotInitializedError()

        self._validate_initialize(session_id, message)
        new_session_id = self._allocate_session_id(session_id)
        record, created = await self._registry.create(new_session_id, self._build_handler)
        if created:
            SESSIONS_CREATED.inc()
            ACTIVE_SESSIONS.set(len(self._registry))
            logger.info(
                "session_created",
                session_id=new_session_id,
                adopted=new_session_id == session_id,
                replaced_session_id=(
                    session_id if session_id and session_id != new_session_id else None
                ),
            )
        else:
            logger.warning("session_create_race_lost", session_id=new_session_id)

        response = await self._delegate(record, message)
        return SubmitResult(session_id=record.session_id, response=response)

    async def handle_stream_read(self, session_id: str | None) -> ConversationStream:
        """Open the outbound message stream of an active conversation.

        Raises:
            SessionNotFoundError: No active conversation has this ID
            SessionClosedError: The conversation closed concurrently
            StreamConflictError: A stream is already open for this conversation
        """
        record = self._require_active(session_id)
        return record.handler.open_stream()

    async def handle_terminate(self, session_id: str | None) -> TerminateAck:
        """Terminate a conversation. Repeating the call returns the same ack.

        Raises:
            SessionNotFoundError: The ID was never registered (or its
                tombstone has been evicted)
        """
        if not session_id:
            raise SessionNotFoundError()

        record = self._registry.get(session_id)
        if record is None:
            ack = self._tombstones.get(session_id)
            if ack is None:
                raise SessionNotFoundError()
            logger.debug("session_terminate_repeated", session_id=session_id)
            return ack

        if record.status is RecordStatus.CLOSING:
            return TerminateAck(session_id=session_id)

        record.status = RecordStatus.CLOSING
        try:
            await record.handler.terminate()
        finally:
            await self._discard(record, reason="terminated")
        return self._tombstones.get(session_id) or TerminateAck(session_id=session_id)

    async def shutdown(self) -> None:
        """Terminate every conversation concurrently and empty the registry."""
        self._shutting_down = True
        records = self._registry.snapshot()
        logger.info("router_shutdown_started", session_count=len(records))

        for record in records:
            record.status = RecordStatus.CLOSING

        results = await asyncio.gather(
            *(self._terminate_for_shutdown(record) for record in records),
            return_exceptions=True,
        )
        for record, result in zip(records, results, strict=True):
            if isinstance(result, BaseException):
                ERRORS.labels(error_type="shutdown").inc()
                logger.error(
                    "session_shutdown_failed",
                    session_id=record.session_id,
                    error=str(result) or type(result).__name__,
                    error_type=type(result).__name__,
                )

        for record in await self._registry.clear():
            SESSIONS_CLOSED.labels(reason="shutdown").inc()
            self._remember(record.session_id)
        ACTIVE_SESSIONS.set(0)

        logger.info("router_shutdown_completed", session_count=len(records))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_handler(self, session_id: str) -> ConversationHandler:
        handler = self._handler_factory(session_id)
        handler.closed.connect(self._on_handler_closed)
        return handler

    def _allocate_session_id(self, requested: str | None) -> str:
        if (
            requested
            and self._accept_client_session_ids
            and requested not in self._registry
            and requested not in self._tombstones
            and _SESSION_ID_PATTERN.fullmatch(requested)
        ):
            return requested
        return str(uuid4())

    def _validate_initialize(self, session_id: str | None, message: JsonRpcMessage) -> None:
        try:
            InitializeParams.model_validate(message.params or {})
        except ValidationError as e:
            logger.info(
                "submit_rejected",
                session_id=session_id,
                method=message.method,
                reason="invalid_initialize_params",
            )
            raise InvalidParamsError(
                "Invalid params for initialize", data=describe_validation_error(e)
            ) from e

    def _require_active(self, session_id: str | None) -> ConversationRecord:
        record = self._registry.get(session_id) if session_id else None
        if record is None or record.status is not RecordStatus.ACTIVE:
            raise SessionNotFoundError()
        return record

    async def _delegate(
        self,
        record: ConversationRecord,
        message: JsonRpcMessage,
    ) -> JsonRpcResponse | None:
        try:
            return await record.handler.submit(message)
        except Exception as e:
            ERRORS.labels(error_type="internal_error").inc()
            logger.exception(
                "session_delegate_failed",
                session_id=record.session_id,
                method=message.method,
                error=str(e),
            )
            return InternalError("Internal error").to_envelope(message.id)

    async def _terminate_for_shutdown(self, record: ConversationRecord) -> None:
        await asyncio.wait_for(record.handler.terminate(), timeout=self._shutdown_timeout)

    async def _on_handler_closed(self, handler: ConversationHandler) -> None:
        record = self._registry.get(handler.session_id)
        if record is None or record.handler is not handler:
            return
        reason = "shutdown" if self._shutting_down else handler.close_reason or "closed"
        await self._discard(record, reason=reason)

    async def _discard(self, record: ConversationRecord, reason: str) -> None:
        removed = await self._registry.remove(record.session_id, handler=record.handler)
        self._remember(record.session_id)
        if removed is None:
            return
        SESSIONS_CLOSED.labels(reason=reason).inc()
        ACTIVE_SESSIONS.set(len(self._registry))
        logger.info("session_removed", session_id=record.session_id, reason=reason)

    def _remember(self, session_id: str) -> None:
        if self._tombstone_limit <= 0:
            return
        self._tombstones[session_id] = TerminateAck(session_id=session_id)
        self._tombstones.move_to_end(session_id)
        while len(self._tombstones) > self._tombstone_limit:
            self._tombstones.popitem(last=False)
