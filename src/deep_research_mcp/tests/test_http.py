"""Tests for the HTTP bindings: health, auth gate, method checks and message routing."""

from __future__ import annotations

import pytest
from starlette.responses import Response
from starlette.testclient import TestClient

from deep_research_mcp.server import ServerFactory
from deep_research_mcp.transports import SessionClosed, SessionRecord, SessionRegistry, create_http_app

from .conftest import make_settings


class RecordingTransport:
    """Stands in for an SSE session: accepts every POST, or reports itself closed."""

    def __init__(self, closed: bool = False) -> None:
        self.closed = closed
        self.bodies: list[bytes] = []

    async def handle_post(self, scope, receive, send) -> None:
        if self.closed:
            raise SessionClosed("gone")
        message = await receive()
        self.bodies.append(message.get("body", b""))
        await Response("Accepted", status_code=202)(scope, receive, send)


MCP_HEADERS = {"Accept": "application/json, text/event-stream", "Content-Type": "application/json"}


def _tool_call(request_id: int, query: str) -> dict[str, object]:
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call",
            "params": {"name": "deepResearch.run", "arguments": {"query": query}}}


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def client(http_dispatcher, registry: SessionRegistry) -> TestClient:
    settings = make_settings()
    return TestClient(create_http_app(ServerFactory(http_dispatcher, settings), settings, registry=registry))


@pytest.fixture
def secured(http_dispatcher, registry: SessionRegistry) -> TestClient:
    settings = make_settings(api_key="s3cret")
    return TestClient(create_http_app(ServerFactory(http_dispatcher, settings), settings, registry=registry))


# ─────────────────────────────────────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────────────────────────────────────


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "mode": "http", "version": "1.0.0"}


def test_health_needs_no_key(secured: TestClient) -> None:
    assert secured.get("/health").status_code == 200


def test_app_state_reflects_auth(client: TestClient, secured: TestClient) -> None:
    assert client.app.state.auth_enabled is False
    assert secured.app.state.auth_enabled is True


# ─────────────────────────────────────────────────────────────────────────────
# Stateless /mcp exchange
# ─────────────────────────────────────────────────────────────────────────────


def test_initialize_over_stateless_http(client: TestClient) -> None:
    response = client.post("/mcp", headers=MCP_HEADERS, json={
        "jsonrpc": "2.0", "id": 1, "method": "initialize",
        "params": {"protocolVersion": "2025-03-26", "capabilities": {},
                   "clientInfo": {"name": "test-client", "version": "0.1"}},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == 1
    assert body["result"]["serverInfo"]["name"] == "deep-research"
    assert "tools" in body["result"]["capabilities"]


def test_tool_call_over_stateless_http_is_offloaded(client: TestClient, pipeline, store) -> None:
    response = client.post("/mcp", headers=MCP_HEADERS, json=_tool_call(7, "tidal energy"))

    assert response.status_code == 200
    result = response.json()["result"]
    assert pipeline.call_count == 1
    assert pipeline.calls[0]["query"] == "tidal energy"
    assert len(store.uploads) == 1
    assert "curl -L 'https://storage.example/reports/1?sig=abc'" in result["content"][0]["text"]
    assert result["structuredContent"]["metadata"]["reportUrl"] == "https://storage.example/reports/1?sig=abc"


def test_each_request_gets_a_fresh_server_over_a_shared_cache(client: TestClient, pipeline, store) -> None:
    first = client.post("/mcp", headers=MCP_HEADERS, json=_tool_call(1, "wind shear"))
    second = client.post("/mcp", headers=MCP_HEADERS, json=_tool_call(2, "wind shear"))

    assert first.status_code == second.status_code == 200
    assert second.json()["id"] == 2
    assert pipeline.call_count == 1
    assert len(store.uploads) == 1
    assert first.json()["result"]["content"] == second.json()["result"]["content"]


# ─────────────────────────────────────────────────────────────────────────────
# Method checks
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize("method", ["GET", "DELETE", "PUT"])
def test_mcp_rejects_non_post_with_jsonrpc_error(client: TestClient, method: str) -> None:
    response = client.request(method, "/mcp")
    assert response.status_code == 405
    assert response.json() == {"jsonrpc": "2.0", "error": {"code": -32000, "message": "Method not allowed"},
                               "id": None}


def test_messages_rejects_get(client: TestClient) -> None:
    assert client.get("/messages?sessionId=abc").status_code == 405


def test_sse_rejects_post(client: TestClient) -> None:
    assert client.post("/sse").status_code == 405


# ─────────────────────────────────────────────────────────────────────────────
# API-key gate
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize("path", ["/mcp", "/messages?sessionId=abc"])
def test_missing_key_is_unauthorized(secured: TestClient, path: str) -> None:
    response = secured.post(path, json={"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_sse_without_key_is_unauthorized(secured: TestClient, registry: SessionRegistry) -> None:
    response = secured.get("/sse")
    assert response.status_code == 401
    assert len(registry) == 0


def test_wrong_key_is_unauthorized(secured: TestClient, logs) -> None:
    response = secured.post("/messages?sessionId=abc", headers={"x-api-key": "nope"})
    assert response.status_code == 401
    assert "unauthorized request" in logs.events("warning")


@pytest.mark.parametrize("headers", [{"x-api-key": "s3cret"}, {"Authorization": "Bearer s3cret"}])
def test_valid_key_passes_the_gate(secured: TestClient, headers: dict[str, str]) -> None:
    # Past the gate, an unknown session is the next thing to fail
    response = secured.post("/messages?sessionId=abc", headers=headers, json={})
    assert response.status_code == 404


def test_valid_key_reaches_the_mcp_endpoint(secured: TestClient, pipeline) -> None:
    response = secured.post("/mcp", headers={**MCP_HEADERS, "x-api-key": "s3cret"},
                            json=_tool_call(1, "coral bleaching"))
    assert response.status_code == 200
    assert response.json()["id"] == 1
    assert pipeline.call_count == 1


def test_no_key_configured_lets_everything_through(client: TestClient) -> None:
    assert client.post("/messages?sessionId=abc", json={}).status_code == 404


# ─────────────────────────────────────────────────────────────────────────────
# Message routing
# ─────────────────────────────────────────────────────────────────────────────


def test_missing_session_id(client: TestClient) -> None:
    response = client.post("/messages", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing sessionId"}


def test_unknown_session(client: TestClient) -> None:
    response = client.post("/messages?sessionId=does-not-exist", json={})
    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}


def test_message_is_routed_to_its_session(client: TestClient, registry: SessionRegistry) -> None:
    target, other = RecordingTransport(), RecordingTransport()
    registry.register(SessionRecord("abc", target, None))  # type: ignore[arg-type]
    registry.register(SessionRecord("xyz", other, None))  # type: ignore[arg-type]

    response = client.post("/messages?sessionId=abc", content=b'{"jsonrpc":"2.0","id":1,"method":"ping"}')

    assert response.status_code == 202
    assert target.bodies == [b'{"jsonrpc":"2.0","id":1,"method":"ping"}']
    assert other.bodies == []


def test_snake_case_session_id_is_accepted(client: TestClient, registry: SessionRegistry) -> None:
    registry.register(SessionRecord("abc", RecordingTransport(), None))  # type: ignore[arg-type]
    assert client.post("/messages?session_id=abc", json={}).status_code == 202


def test_closed_session_is_not_found(client: TestClient, registry: SessionRegistry) -> None:
    registry.register(SessionRecord("abc", RecordingTransport(closed=True), None))  # type: ignore[arg-type]
    response = client.post("/messages?sessionId=abc", json={})
    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}
