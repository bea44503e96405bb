"""Shared fixtures."""

from __future__ import annotations

import pytest

from deep_research_mcp.cache import ResultCache
from deep_research_mcp.config import DeepResearchSettings, ServerSettings, clear_settings_cache
from deep_research_mcp.dispatcher import RequestDispatcher
from deep_research_mcp.observability import CapturingRenderer, set_renderer

from .fakes import FakeClock, FakePipeline, FakeStore


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> object:
    """No stray .env files or server env vars leak into settings."""
    monkeypatch.chdir(tmp_path)
    for name in ("MCP_HTTP_MODE", "MCP_HOST", "MCP_API_KEY", "PORT", "MCP_PORT", "PROVIDER_CACHE_TTL_MS",
                 "MCP_CACHE_MAX_ENTRIES", "GCS_BUCKET_NAME", "REPORT_BUCKET_NAME", "REPORT_STORAGE_ENDPOINT_URL",
                 "REPORT_STORAGE_REGION", "REPORT_STORAGE_PREFIX", "GEMINI_MODEL",
                 "ENABLE_GEMINI_GOOGLE_SEARCH", "ENABLE_URL_CONTEXT", "ENABLE_GEMINI_FUNCTIONS",
                 "ENABLE_GEMINI_CODE_EXECUTION", "LOG_LEVEL", "LOG_FORMAT",
                 "DEEP_RESEARCH_PIPELINE", "DEEP_RESEARCH_REPORT_WRITER"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def logs() -> CapturingRenderer:
    renderer = CapturingRenderer()
    set_renderer(renderer)
    return renderer


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pipeline() -> FakePipeline:
    return FakePipeline()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def cache(clock: FakeClock) -> ResultCache:
    return ResultCache(ttl=600, max_entries=50, clock=clock)


@pytest.fixture
def stdio_dispatcher(pipeline: FakePipeline, cache: ResultCache, store: FakeStore, logs) -> RequestDispatcher:
    return RequestDispatcher(pipeline, cache, store, remote=False)


@pytest.fixture
def http_dispatcher(pipeline: FakePipeline, cache: ResultCache, store: FakeStore, logs) -> RequestDispatcher:
    return RequestDispatcher(pipeline, cache, store, remote=True)


def make_settings(*, api_key: str | None = None, http_mode: bool = True) -> DeepResearchSettings:
    return DeepResearchSettings(server=ServerSettings(http_mode=http_mode, api_key=api_key))
