"""Streamable HTTP transport for the MCP endpoint.

POST submits one JSON-RPC message, GET opens the server-to-client event
stream of a conversation and DELETE terminates it. The conversation is
identified by the Mcp-Session-Id header on every call after initialize.
"""

import json
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Header, Request, Response
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from stratus.api.dependencies import SessionRouterDep
from stratus.conversation import ConversationStream, TerminateAck
from stratus.observability.logging import get_logger
from stratus.protocol.errors import ParseError, http_status_for
from stratus.protocol.headers import SESSION_ID_HEADER
from stratus.protocol.messages import JsonRpcError, parse_message

logger = get_logger(__name__)

router = APIRouter()

SessionIdHeader = Annotated[str | None, Header(alias=SESSION_ID_HEADER)]


@router.post("")
async def submit_message(
    request: Request,
    session_router: SessionRouterDep,
    session_id: SessionIdHeader = None,
) -> Response:
    """Submit a JSON-RPC message to a conversation.

    An initialize request without a session header starts a new
    conversation; the assigned identifier is returned in the Mcp-Session-Id
    response header. Requests get a 200 with the JSON-RPC response, accepted
    notifications a bare 202. A rejected notification has no request to
    answer, so its error envelope is sent with the matching 4xx status.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        raise ParseError("Parse error: invalid JSON") from e

    message = parse_message(payload)
    result = await session_router.handle_submit(session_id, message)

    headers = {SESSION_ID_HEADER: result.session_id}
    if result.response is None:
        return Response(status_code=202, headers=headers)

    status_code = 200
    if message.is_notification and isinstance(result.response, JsonRpcError):
        status_code = http_status_for(result.response.error.code)

    return JSONResponse(
        status_code=status_code,
        content=result.response.to_wire(),
        headers=headers,
    )


@router.get("")
async def open_stream(
    session_router: SessionRouterDep,
    session_id: SessionIdHeader = None,
) -> EventSourceResponse:
    """Open the server-to-client event stream of a conversation.

    Each outbound message is sent as an SSE `message` event. The stream ends
    when the conversation closes or the client disconnects.
    """
    stream = await session_router.handle_stream_read(session_id)
    logger.info("stream_opened", session_id=stream.session_id)

    return EventSourceResponse(
        _stream_events(stream),
        headers={SESSION_ID_HEADER: stream.session_id},
    )


async def _stream_events(stream: ConversationStream) -> AsyncIterator[dict[str, str]]:
    try:
        async for message in stream:
            yield {
                "event": "message",
                "data": json.dumps(message.model_dump(mode="json", exclude_none=True)),
            }
    finally:
        await stream.aclose()
        logger.info("stream_closed", session_id=stream.session_id)


@router.delete("")
async def terminate_session(
    session_router: SessionRouterDep,
    session_id: SessionIdHeader = None,
) -> TerminateAck:
    """Terminate a conversation. Repeating the call is acknowledged again."""
    return await session_router.handle_terminate(session_id)
