"""JSON-RPC envelope, MCP message schemas and protocol error types."""

from stratus.protocol.errors import (
    AlreadyInitializedError,
    ErrorCode,
    HandshakeIncompleteError,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    NotInitializedError,
    ParseError,
    ProtocolError,
    SessionClosedError,
    SessionError,
    SessionNotFoundError,
    StreamConflictError,
)
from stratus.protocol.messages import (
    JsonRpcError,
    JsonRpcMessage,
    JsonRpcResponse,
    JsonRpcResult,
    is_initialize_request,
    parse_message,
)

__all__ = [
    "AlreadyInitializedError",
    "ErrorCode",
    "HandshakeIncompleteError",
    "InternalError",
    "InvalidParamsError",
    "InvalidRequestError",
    "JsonRpcError",
    "JsonRpcMessage",
    "JsonRpcResponse",
    "JsonRpcResult",
    "MethodNotFoundError",
    "NotInitializedError",
    "ParseError",
    "ProtocolError",
    "SessionClosedError",
    "SessionError",
    "SessionNotFoundError",
    "StreamConflictError",
    "is_initialize_request",
    "parse_message",
]
