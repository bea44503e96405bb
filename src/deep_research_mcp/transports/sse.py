"""Server-sent events transport for one session.

The client keeps a GET stream open and receives an `endpoint` event naming
where to POST its messages (`/messages?sessionId=<id>`). Server messages go
out as `message` events. Closing the stream ends the session.

The SDK's `SseServerTransport` keeps its own private session map; this
class is used instead so the id the client sees is the SessionRegistry key.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any
from urllib.parse import quote
from uuid import uuid4

import anyio
from mcp import types
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..errors import JsonRpcCode, jsonrpc_error
from ..observability import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
    from starlette.types import Receive, Scope, Send

log = get_logger("transport.sse")


class SessionClosed(Exception):
    """The session's stream is not (or no longer) open."""


class SSESession:
    """One SSE stream plus the inbound channel its POSTed messages feed."""

    __slots__ = ("session_id", "_endpoint", "_inbound")

    def __init__(self, endpoint: str = "/messages", *, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid4().hex
        self._endpoint = endpoint
        self._inbound: MemoryObjectSendStream[SessionMessage | Exception] | None = None

    @property
    def endpoint_uri(self) -> str:
        return f"{quote(self._endpoint)}?sessionId={self.session_id}"

    @property
    def connected(self) -> bool:
        return self._inbound is not None

    @asynccontextmanager
    async def connect(
        self, scope: Scope, receive: Receive, send: Send,
    ) -> AsyncIterator[tuple[MemoryObjectReceiveStream[SessionMessage | Exception],
                             MemoryObjectSendStream[SessionMessage]]]:
        """Open the event stream and yield (read, write) streams for the protocol server.

        The read stream ends when the client disconnects, which lets the
        server loop return and this context exit.
        """
        inbound_writer, read_stream = anyio.create_memory_object_stream[SessionMessage | Exception](0)
        write_stream, outbound_reader = anyio.create_memory_object_stream[SessionMessage](0)
        events_writer, events_reader = anyio.create_memory_object_stream[dict[str, Any]](0)
        self._inbound = inbound_writer

        async def pump_events() -> None:
            async with events_writer, outbound_reader:
                await events_writer.send({"event": "endpoint", "data": self.endpoint_uri})
                async for message in outbound_reader:
                    await events_writer.send({
                        "event": "message",
                        "data": message.message.model_dump_json(by_alias=True, exclude_none=True),
                    })

        async def respond() -> None:
            try:
                await EventSourceResponse(content=events_reader, data_sender_callable=pump_events)(
                    scope, receive, send)
            finally:
                self._inbound = None
                await inbound_writer.aclose()
                await outbound_reader.aclose()

        async with anyio.create_task_group() as tg:
            tg.start_soon(respond)
            try:
                yield read_stream, write_stream
            finally:
                tg.cancel_scope.cancel()

    async def handle_post(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Accept one client message and feed it to the session."""
        if (inbound := self._inbound) is None:
            raise SessionClosed(self.session_id)

        body = await Request(scope, receive).body()
        try:
            message = types.JSONRPCMessage.model_validate_json(body)
        except ValidationError:
            log.warning("unparseable message", session_id=self.session_id, size=len(body))
            await JSONResponse(jsonrpc_error(JsonRpcCode.INVALID_REQUEST, "Could not parse message"),
                               status_code=400)(scope, receive, send)
            return

        await Response("Accepted", status_code=202)(scope, receive, send)
        try:
            await inbound.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise SessionClosed(self.session_id) from e
