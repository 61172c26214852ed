# gsc_mcp/mcp_handlers/sse_transport.py
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Tuple

import anyio
import mcp.types as mcp_types
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.shared.message import SessionMessage
from pydantic import ValidationError as PydanticValidationError
from sse_starlette.sse import EventSourceResponse
from starlette.requests import Request as StarletteRequest
from starlette.responses import JSONResponse, Response as StarletteResponse
from starlette.types import Receive, Scope, Send

from ..sessions import SessionRegistry

logger = logging.getLogger(__name__)

SESSION_ID_PARAM = "sessionId"


class SessionSseTransport:
    """
    MCP over SSE, with session identifiers issued by the SessionRegistry.

    GET opens the stream: the first event (`endpoint`) names the POST target
    `<message_path>?sessionId=<id>`, later `message` events carry JSON-RPC
    from the server. POSTs to the message path are routed to the session's
    inbound stream by identifier.
    """

    def __init__(self, registry: SessionRegistry, message_path: str = "/messages"):
        self.registry = registry
        self.message_path = message_path

    @asynccontextmanager
    async def connect_sse(
        self, scope: Scope, receive: Receive, send: Send
    ) -> AsyncIterator[Tuple[MemoryObjectReceiveStream, MemoryObjectSendStream, str]]:
        """
        Open a session stream. Yields (read_stream, write_stream, session_id)
        for an MCP server loop; the session is removed when the stream closes.
        """
        read_stream_writer: MemoryObjectSendStream
        read_stream: MemoryObjectReceiveStream
        read_stream_writer, read_stream = anyio.create_memory_object_stream(0)

        write_stream: MemoryObjectSendStream
        write_stream_reader: MemoryObjectReceiveStream
        write_stream, write_stream_reader = anyio.create_memory_object_stream(0)

        session_id = await self.registry.create(inbound_writer=read_stream_writer)
        # Prefix with the mount point so the POST target resolves under a sub-mounted app.
        root_path = scope.get("root_path", "")
        endpoint = f"{root_path}{self.message_path}?{SESSION_ID_PARAM}={session_id}"

        sse_stream_writer: MemoryObjectSendStream
        sse_stream_reader: MemoryObjectReceiveStream
        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream(0)

        async def sse_writer() -> None:
            async with sse_stream_writer, write_stream_reader:
                await sse_stream_writer.send({"event": "endpoint", "data": endpoint})
                logger.debug(f"sse_writer: Sent endpoint event for session {session_id}: {endpoint}")
                async for session_message in write_stream_reader:
                    await sse_stream_writer.send({
                        "event": "message",
                        "data": session_message.message.model_dump_json(by_alias=True, exclude_none=True),
                    })

        async def run_response(scope: Scope, receive: Receive, send: Send) -> None:
            try:
                response = EventSourceResponse(content=sse_stream_reader, data_sender_callable=sse_writer)
                await response(scope, receive, send)
            finally:
                logger.info(f"Connection closed: {session_id}")
                await read_stream_writer.aclose()
                await write_stream_reader.aclose()
                await self.registry.remove(session_id)

        logger.info(f"New connection: {session_id}")
        async with anyio.create_task_group() as tg:
            tg.start_soon(run_response, scope, receive, send)
            try:
                yield read_stream, write_stream, session_id
            finally:
                # Server loop is done (client gone or session expired); end the SSE response.
                await write_stream.aclose()

    async def handle_post_message(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = StarletteRequest(scope, receive)
        session_id = request.query_params.get(SESSION_ID_PARAM)
        if not session_id:
            logger.warning("handle_post_message: Request without sessionId.")
            await StarletteResponse("sessionId is required", status_code=400)(scope, receive, send)
            return

        session = self.registry.get(session_id)
        if session is None or session.inbound_writer is None:
            logger.warning(f"handle_post_message: Session not found: {session_id}")
            await JSONResponse({"error": "Session not found"}, status_code=404)(scope, receive, send)
            return

        body = await request.body()
        try:
            message = mcp_types.JSONRPCMessage.model_validate_json(body)
        except PydanticValidationError as e:
            logger.warning(f"handle_post_message: Could not parse message for session {session_id}: {e}")
            await StarletteResponse("Could not parse message", status_code=400)(scope, receive, send)
            return

        self.registry.touch(session_id)
        logger.debug(f"handle_post_message: Session {session_id} received {_describe(message)}")
        await StarletteResponse("Accepted", status_code=202)(scope, receive, send)
        try:
            await session.inbound_writer.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning(f"handle_post_message: Session {session_id} closed before the message was delivered.")


def _describe(message: mcp_types.JSONRPCMessage) -> str:
    root: Any = message.root
    method = getattr(root, "method", None)
    request_id = getattr(root, "id", None)
    details: Dict[str, Any] = {"method": method, "id": request_id}
    return ", ".join(f"{key}={value}" for key, value in details.items() if value is not None) or type(root).__name__
