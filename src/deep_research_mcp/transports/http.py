"""HTTP bindings: stateless JSON endpoint and SSE sessions on one Starlette app.

Endpoints:
    GET  /health                 → liveness, no auth
    POST /mcp                    → one protocol exchange on a fresh server, JSON response
    GET|DELETE /mcp              → JSON-RPC "Method not allowed"
    GET  /sse                    → opens a streaming session
    POST /messages?sessionId=…   → routes a client message to its session

Example:
    >>> app = create_http_app(factory, settings)
    >>> uvicorn.run(app, host="0.0.0.0", port=8080)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import anyio
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..errors import JsonRpcCode, jsonrpc_error
from ..observability import get_logger
from ..server import lowlevel
from .auth import ApiKeyGate
from .registry import SessionRecord, SessionRegistry
from .sse import SessionClosed, SSESession

if TYPE_CHECKING:
    from starlette.types import Message, Receive, Scope, Send

    from ..config import DeepResearchSettings
    from ..server import ServerFactory

MESSAGES_PATH = "/messages"

log = get_logger("transport.http")


def method_not_allowed() -> JSONResponse:
    return JSONResponse(jsonrpc_error(JsonRpcCode.SERVER_ERROR, "Method not allowed"), status_code=405)


def internal_error() -> JSONResponse:
    return JSONResponse(jsonrpc_error(JsonRpcCode.INTERNAL_ERROR, "Internal server error"), status_code=500)


class _TrackedSend:
    """Remembers whether the response has started, so errors can still be reported."""

    __slots__ = ("_send", "started")

    def __init__(self, send: Send) -> None:
        self._send = send
        self.started = False

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
        await self._send(message)


class StatelessMCPEndpoint:
    """POST /mcp: fresh protocol server + transport per request, torn down when it completes."""

    def __init__(self, factory: ServerFactory, gate: ApiKeyGate) -> None:
        self._factory = factory
        self._gate = gate

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        if request.method != "POST":
            await method_not_allowed()(scope, receive, send)
            return
        if (denied := self._gate.check(request)) is not None:
            await denied(scope, receive, send)
            return

        tracked = _TrackedSend(send)
        try:
            await self._exchange(scope, receive, tracked)
        except Exception:
            log.exception("error handling mcp request")
            if not tracked.started:
                await internal_error()(scope, receive, send)

    async def _exchange(self, scope: Scope, receive: Receive, send: Send) -> None:
        server = lowlevel(self._factory())
        transport = StreamableHTTPServerTransport(mcp_session_id=None, is_json_response_enabled=True)

        async def run_server(*, task_status: anyio.abc.TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
            async with transport.connect() as (read_stream, write_stream):
                task_status.started()
                try:
                    await server.run(read_stream, write_stream, server.create_initialization_options(),
                                     stateless=True)
                except Exception:
                    log.exception("stateless server crashed")

        async with anyio.create_task_group() as tg:
            await tg.start(run_server)
            try:
                await transport.handle_request(scope, receive, send)
            finally:
                await transport.terminate()
                tg.cancel_scope.cancel()


class SSEEndpoint:
    """GET /sse: one protocol server per stream, registered for the stream's lifetime."""

    def __init__(self, factory: ServerFactory, gate: ApiKeyGate, registry: SessionRegistry) -> None:
        self._factory = factory
        self._gate = gate
        self._registry = registry

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        if request.method != "GET":
            await method_not_allowed()(scope, receive, send)
            return
        if (denied := self._gate.check(request)) is not None:
            await denied(scope, receive, send)
            return

        session = SSESession(MESSAGES_PATH, session_id=self._registry.new_id())
        try:
            mcp = self._factory()
            self._registry.register(SessionRecord(session.session_id, session, mcp))
            log.info("sse session opened", session_id=session.session_id, open_sessions=len(self._registry))
            server = lowlevel(mcp)
            async with session.connect(scope, receive, send) as (read_stream, write_stream):
                await server.run(read_stream, write_stream, server.create_initialization_options())
        except Exception:
            log.exception("sse session error", session_id=session.session_id)
        finally:
            self._registry.remove(session.session_id)
            log.info("sse session closed", session_id=session.session_id, open_sessions=len(self._registry))


class MessagesEndpoint:
    """POST /messages?sessionId=…: deliver a client message to its open session."""

    def __init__(self, gate: ApiKeyGate, registry: SessionRegistry) -> None:
        self._gate = gate
        self._registry = registry

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        if request.method != "POST":
            await method_not_allowed()(scope, receive, send)
            return
        if (denied := self._gate.check(request)) is not None:
            await denied(scope, receive, send)
            return

        session_id = request.query_params.get("sessionId") or request.query_params.get("session_id")
        if not session_id:
            await JSONResponse({"error": "Missing sessionId"}, status_code=400)(scope, receive, send)
            return
        record = self._registry.get(session_id)
        if record is None:
            log.warning("unknown session", session_id=session_id)
            await JSONResponse({"error": "Session not found"}, status_code=404)(scope, receive, send)
            return

        tracked = _TrackedSend(send)
        try:
            await record.transport.handle_post(scope, receive, tracked)
        except SessionClosed:
            log.warning("message for closed session", session_id=session_id)
            if not tracked.started:
                await JSONResponse({"error": "Session not found"}, status_code=404)(scope, receive, send)


def create_http_app(
    factory: ServerFactory,
    settings: DeepResearchSettings,
    *,
    registry: SessionRegistry | None = None,
) -> Starlette:
    """Build the ASGI app. The registry is exposed as `app.state.sessions`."""
    gate = ApiKeyGate(settings.server.api_key)
    sessions = registry if registry is not None else SessionRegistry()

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "mode": "http", "version": settings.version})

    app = Starlette(routes=[
        Route("/health", health, methods=["GET"]),
        Route("/mcp", StatelessMCPEndpoint(factory, gate)),
        Route("/sse", SSEEndpoint(factory, gate, sessions)),
        Route(MESSAGES_PATH, MessagesEndpoint(gate, sessions)),
    ])
    app.state.sessions = sessions
    app.state.auth_enabled = gate.enabled
    return app


def serve_http(app: Any, *, host: str, port: int) -> None:
    """Run the app under uvicorn (blocking). Failing to bind is fatal."""
    import uvicorn

    log.info("mcp server running", host=host, port=port, mode="http")
    uvicorn.run(app, host=host, port=port, log_level="warning")
