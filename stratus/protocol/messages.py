"""JSON-RPC 2.0 envelope models.

Requests and notifications share JsonRpcMessage; a message without an `id`
is a notification and never receives a response. Responses are either a
JsonRpcResult or a JsonRpcError.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stratus.protocol.errors import InvalidRequestError, describe_validation_error
from stratus.protocol.mcp import INITIALIZE

JSONRPC_VERSION = "2.0"

RequestId = str | int


class JsonRpcMessage(BaseModel):
    """An inbound JSON-RPC request or notification."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"]
    id: RequestId | None = None
    method: str = Field(..., min_length=1)
    params: dict[str, Any] | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class ErrorObject(BaseModel):
    """The `error` member of an error response."""

    code: int
    message: str
    data: Any = None


class JsonRpcResult(BaseModel):
    """Successful response envelope."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId
    result: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


class JsonRpcError(BaseModel):
    """Error response envelope. `id` is null when the request could not be identified."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId | None = None
    error: ErrorObject

    def to_wire(self) -> dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "error": self.error.model_dump(exclude_none=True),
        }


JsonRpcResponse = JsonRpcResult | JsonRpcError


def parse_message(payload: Any) -> JsonRpcMessage:
    """Validate a decoded request body as a single JSON-RPC message.

    Raises:
        InvalidRequestError: If the payload is a batch, not an object, or
            does not have the request shape
    """
    if isinstance(payload, list):
        raise InvalidRequestError("Invalid Request: batch messages are not supported")
    if not isinstance(payload, dict):
        raise InvalidRequestError("Invalid Request: expected a JSON object")

    try:
        return JsonRpcMessage.model_validate(payload)
    except ValidationError as exc:
        raise InvalidRequestError("Invalid Request", data=describe_validation_error(exc)) from exc


def is_initialize_request(message: JsonRpcMessage) -> bool:
    """Return True if the message may start a new conversation.

    Only a request (not a notification) whose method is `initialize`
    qualifies, regardless of any session header that accompanied it.
    """
    return message.method == INITIALIZE and not message.is_notification
