"""Transport bindings: stdio, stateless HTTP and SSE."""

from .auth import ApiKeyGate
from .http import MESSAGES_PATH, create_http_app, serve_http
from .registry import SessionRecord, SessionRegistry
from .sse import SessionClosed, SSESession
from .stdio import serve_stdio

__all__ = [
    "MESSAGES_PATH",
    "ApiKeyGate",
    "SSESession",
    "SessionClosed",
    "SessionRecord",
    "SessionRegistry",
    "create_http_app",
    "serve_http",
    "serve_stdio",
]
