"""Protocol exception hierarchy.

Every error a client can observe is a ProtocolError subclass. Each class
carries a stable JSON-RPC error code and the HTTP status used when the error
is raised outside a conversation (router-level failures). Errors produced
inside a conversation are rendered into the response envelope with
`to_envelope` instead of being raised.
"""

from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pydantic import ValidationError

    from stratus.protocol.messages import JsonRpcError, RequestId


def describe_validation_error(exc: "ValidationError") -> list[dict[str, str]]:
    """Flatten a pydantic ValidationError into JSON-safe field/message pairs."""
    return [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]


class ErrorCode(IntEnum):
    """JSON-RPC error codes returned by Stratus."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    NOT_INITIALIZED = -32000
    """Non-initialize request without a usable session."""

    SESSION_NOT_FOUND = -32001
    """Session header names no registered conversation."""

    ALREADY_INITIALIZED = -32002
    """initialize sent to a conversation that already received one."""

    SESSION_CLOSED = -32003
    """The conversation has been terminated."""

    HANDSHAKE_INCOMPLETE = -32004
    """Operation sent before the handshake acknowledgment."""

    STREAM_CONFLICT = -32005
    """A second stream was opened for the same conversation."""


class ProtocolError(Exception):
    """Base exception for all client-visible protocol errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, data: Any = None) -> None:
        self.message = message
        self.data = data
        super().__init__(message)

    def to_envelope(self, request_id: "RequestId | None" = None) -> "JsonRpcError":
        """Render this error as a JSON-RPC error response."""
        from stratus.protocol.messages import ErrorObject, JsonRpcError

        return JsonRpcError(
            id=request_id,
            error=ErrorObject(code=int(self.code), message=self.message, data=self.data),
        )


class ParseError(ProtocolError):
    """Raised when the request body is not valid JSON."""

    code = ErrorCode.PARSE_ERROR
    status_code = 400


class InvalidRequestError(ProtocolError):
    """Raised when the body is JSON but not a JSON-RPC request."""

    code = ErrorCode.INVALID_REQUEST
    status_code = 400


class MethodNotFoundError(ProtocolError):
    code = ErrorCode.METHOD_NOT_FOUND
    status_code = 404


class InvalidParamsError(ProtocolError):
    code = ErrorCode.INVALID_PARAMS
    status_code = 400


class InternalError(ProtocolError):
    code = ErrorCode.INTERNAL_ERROR
    status_code = 500


class SessionError(ProtocolError):
    """Base class for session and conversation lifecycle errors."""

    code = ErrorCode.SESSION_NOT_FOUND
    status_code = 400


class NotInitializedError(SessionError):
    """No session matched and the message cannot start one."""

    code = ErrorCode.NOT_INITIALIZED
    status_code = 400

    def __init__(
        self, message: str = "Bad Request: Server not initialized", data: Any = None
    ) -> None:
        super().__init__(message, data)


class SessionNotFoundError(SessionError):
    """The session identifier is unknown or was not supplied."""

    code = ErrorCode.SESSION_NOT_FOUND
    status_code = 400

    def __init__(self, message: str = "Invalid session", data: Any = None) -> None:
        super().__init__(message, data)


class AlreadyInitializedError(SessionError):
    code = ErrorCode.ALREADY_INITIALIZED
    status_code = 400

    def __init__(
        self, message: str = "Invalid Request: Server already initialized", data: Any = None
    ) -> None:
        super().__init__(message, data)


class SessionClosedError(SessionError):
    code = ErrorCode.SESSION_CLOSED
    status_code = 410

    def __init__(self, message: str = "Session closed", data: Any = None) -> None:
        super().__init__(message, data)


class HandshakeIncompleteError(SessionError):
    """An operation arrived before the client acknowledged initialization."""

    code = ErrorCode.HANDSHAKE_INCOMPLETE
    status_code = 400

    def __init__(self, message: str = "Session not initialized", data: Any = None) -> None:
        super().__init__(message, data)


class StreamConflictError(SessionError):
    code = ErrorCode.STREAM_CONFLICT
    status_code = 409

    def __init__(
        self, message: str = "Conflict: Only one stream is allowed per session", data: Any = None
    ) -> None:
        super().__init__(message, data)


_HTTP_STATUS_BY_CODE: dict[int, int] = {
    int(error.code): error.status_code
    for error in (
        ParseError,
        InvalidRequestError,
        MethodNotFoundError,
        InvalidParamsError,
        InternalError,
        NotInitializedError,
        SessionNotFoundError,
        AlreadyInitializedError,
        SessionClosedError,
        HandshakeIncompleteError,
        StreamConflictError,
    )
}


def http_status_for(code: int) -> int:
    """HTTP status of the error class that owns a JSON-RPC error code."""
    return _HTTP_STATUS_BY_CODE.get(code, 500)
