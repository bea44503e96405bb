"""Process wiring: settings → cache, offloader, dispatcher → transport binding.

The cache and the dispatcher are created once here and passed down; nothing
reaches for them through module globals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .cache import ResultCache
from .dispatcher import RequestDispatcher
from .errors import PipelineLoadError
from .observability import get_logger
from .pipeline import load_callable
from .server import ServerFactory
from .storage import BlobOffloader
from .transports import create_http_app, serve_http, serve_stdio

if TYPE_CHECKING:
    from .config import DeepResearchSettings
    from .pipeline import ReportWriter, ResearchPipeline
    from .storage import ReportStore

log = get_logger("bootstrap")


def load_pipeline(settings: DeepResearchSettings) -> ResearchPipeline:
    if not settings.pipeline.pipeline:
        raise PipelineLoadError("No research pipeline configured; set DEEP_RESEARCH_PIPELINE=module:callable")
    return load_callable(settings.pipeline.pipeline)


def load_report_writer(settings: DeepResearchSettings) -> ReportWriter:
    if not settings.pipeline.report_writer:
        raise PipelineLoadError("No report writer configured; set DEEP_RESEARCH_REPORT_WRITER=module:callable")
    return load_callable(settings.pipeline.report_writer)


def build_dispatcher(
    settings: DeepResearchSettings,
    *,
    pipeline: ResearchPipeline | None = None,
    store: ReportStore | None = None,
    cache: ResultCache | None = None,
) -> RequestDispatcher:
    """Dispatcher for the configured mode; HTTP mode always delivers by reference."""
    return RequestDispatcher(
        pipeline if pipeline is not None else load_pipeline(settings),
        cache if cache is not None else ResultCache(settings.cache.ttl_seconds, settings.cache.max_entries),
        store if store is not None else BlobOffloader.from_settings(settings.storage),
        remote=settings.server.http_mode,
    )


def serve(settings: DeepResearchSettings, *, pipeline: ResearchPipeline | None = None) -> None:
    """Start the transport selected by MCP_HTTP_MODE (blocking)."""
    dispatcher = build_dispatcher(settings, pipeline=pipeline)
    factory = ServerFactory(dispatcher, settings)
    log.info("starting", mode=settings.server.mode, cache_ttl_seconds=dispatcher.cache.ttl,
             auth_enabled=settings.server.api_key is not None, bucket=settings.storage.bucket)
    if settings.server.http_mode:
        serve_http(create_http_app(factory, settings), host=settings.server.host, port=settings.server.port)
    else:
        serve_stdio(factory)
