"""Protocol-server factory.

Each call to `ServerFactory()` builds a fresh FastMCP instance exposing:

- tool `deepResearch.run` backed by the shared RequestDispatcher
- resource `mcp://capabilities` with feature flags and the cache TTL

Stateless HTTP builds one per request, SSE one per session and stdio one
per process. All of them share the dispatcher, and through it the cache.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any

import orjson
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field

from .models import ResearchFlags

if TYPE_CHECKING:
    from mcp.server.lowlevel import Server

    from .cache import ResultCache
    from .config import DeepResearchSettings
    from .dispatcher import RequestDispatcher
    from .models import ResearchResult

TOOL_NAME = "deepResearch.run"
TOOL_DESCRIPTION = "Gemini-only deep research pipeline (Google Search grounding + URL context)."
CAPABILITIES_URI = "mcp://capabilities"


def capabilities(settings: DeepResearchSettings, cache: ResultCache) -> dict[str, Any]:
    """Informational snapshot served by the capabilities resource."""
    features = settings.features
    return {
        "name": settings.name,
        "version": settings.version,
        "geminiModel": features.gemini_model,
        "googleSearchEnabled": features.google_search,
        "urlContextEnabled": features.url_context,
        "functionsEnabled": features.functions,
        "codeExecEnabled": features.code_execution,
        "providerCacheTtlMs": int(cache.ttl * 1000),
    }


def to_tool_result(result: ResearchResult) -> ToolResult:
    """Content blocks go in `content`; metadata rides along as structured content."""
    wire = result.to_wire()
    return ToolResult(
        content=[TextContent(type="text", text=block.text) for block in result.content],
        structured_content={"metadata": wire["metadata"]},
    )


def lowlevel(server: FastMCP) -> Server:
    """The SDK server behind a FastMCP instance, for binding to custom transports."""
    return server._mcp_server  # noqa: SLF001


class ServerFactory:
    """Builds isolated protocol-server instances around one dispatcher."""

    __slots__ = ("_dispatcher", "_settings")

    def __init__(self, dispatcher: RequestDispatcher, settings: DeepResearchSettings) -> None:
        self._dispatcher = dispatcher
        self._settings = settings

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    def __call__(self) -> FastMCP:
        mcp = FastMCP(self._settings.name, version=self._settings.version)
        self._register_tool(mcp)
        self._register_capabilities(mcp)
        return mcp

    def _register_tool(self, mcp: FastMCP) -> None:
        dispatcher = self._dispatcher

        async def deep_research(
            query: Annotated[str, Field(min_length=1, description="The research query to investigate")],
            depth: Annotated[int | None, Field(ge=1, le=5, description="How deep to go in the research tree (1-5)")] = None,
            breadth: Annotated[int | None, Field(ge=1, le=5, description="How broad to make each research level (1-5)")] = None,
            existingLearnings: Annotated[  # noqa: N803 - wire name
                list[str] | None, Field(description="Optional learnings to build upon")] = None,
            goal: Annotated[str | None, Field(description="Optional goal/brief to steer synthesis")] = None,
            flags: ResearchFlags | None = None,
        ) -> ToolResult:
            arguments: dict[str, Any] = {"query": query, "depth": depth, "breadth": breadth,
                                         "existingLearnings": existingLearnings or [], "goal": goal}
            if flags is not None:
                arguments["flags"] = flags.model_dump(by_alias=True, exclude_none=True)
            result = await dispatcher.dispatch(arguments)
            if result.is_error:
                # surfaces as isError on the wire; failures carry no metadata
                raise ToolError(result.text)
            return to_tool_result(result)

        mcp.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION)(deep_research)

    def _register_capabilities(self, mcp: FastMCP) -> None:
        settings, cache = self._settings, self._dispatcher.cache

        def read_capabilities() -> str:
            return orjson.dumps(capabilities(settings, cache)).decode()

        mcp.resource(
            CAPABILITIES_URI,
            name="capabilities",
            description="Feature flags and environment info",
            mime_type="application/json",
        )(read_capabilities)
