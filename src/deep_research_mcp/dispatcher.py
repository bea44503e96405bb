"""The `deepResearch.run` tool handler.

Per call: derive the fingerprint, consult the cache, and on a miss run the
pipeline, size the report, choose a delivery mode and cache the result.
Each step depends on the one before it, so they run strictly in order.

A call always resolves to a ResearchResult. Validation and pipeline failures
become error content; a storage failure only replaces the report URL with
an error marker.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .cache import fingerprint
from .delivery import DeliveryMode, decide, offload_reason, render_inline, render_offloaded, report_size_kb
from .errors import ErrorCode, ResearchError
from .models import ResearchOutcome, ResearchParams, ResearchResult, ResultMetadata
from .observability import get_logger
from .pipeline import invoke
from .progress import log_progress

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .cache import ResultCache
    from .observability import BoundLogger
    from .pipeline import ResearchPipeline
    from .storage import ReportStore

OFFLOAD_ERROR_MARKER = "ERROR: Failed to upload report to cloud storage"
UNREADABLE_REPORT = "Error reading report file."
MISSING_REPORT = "# Error: No report content generated."


class RequestDispatcher:
    """Cache-aware research dispatcher shared by every protocol-server instance.

    Args:
        pipeline: External research pipeline
        cache: Process-wide result cache
        store: Offload target for reports delivered by reference
        remote: True when serving HTTP/SSE clients (always offload)
    """

    __slots__ = ("_pipeline", "_cache", "_store", "_remote", "_log")

    def __init__(
        self,
        pipeline: ResearchPipeline,
        cache: ResultCache,
        store: ReportStore,
        *,
        remote: bool = False,
        log: BoundLogger | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._cache = cache
        self._store = store
        self._remote = remote
        self._log = log or get_logger("dispatcher")

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def remote(self) -> bool:
        return self._remote

    async def dispatch(self, arguments: Mapping[str, Any]) -> ResearchResult:
        """Validate raw tool arguments, then run. Invalid input never reaches the pipeline."""
        try:
            params = ResearchParams.model_validate(dict(arguments))
        except ValidationError as e:
            message = "; ".join(f"{'.'.join(map(str, err['loc'])) or 'input'}: {err['msg']}" for err in e.errors())
            self._log.warning("invalid request", errors=e.error_count())
            return ResearchResult.failure(ResearchError(message=message, code=ErrorCode.INVALID_PARAMS,
                                                        recoverable=False))
        return await self.run(params)

    async def run(self, params: ResearchParams) -> ResearchResult:
        key = fingerprint(params)
        log = self._log.bind(key=key[:8], query=params.query)

        if (cached := self._cache.get(key)) is not None:
            log.info("cache hit")
            return cached
        log.info("cache miss")

        try:
            log.info("research started", depth=params.effective_depth, breadth=params.effective_breadth)
            outcome = await invoke(
                self._pipeline,
                query=params.query,
                depth=params.effective_depth,
                breadth=params.effective_breadth,
                existing_learnings=params.existing_learnings,
                on_progress=log_progress(log),
            )
            log.info("research completed", learnings=len(outcome.learnings), sources=len(outcome.visited_urls))
            report = await self._read_report(outcome, log)
        except Exception as e:
            error = ResearchError.from_exception(e)
            log.error("research failed", error=error.message, code=error.code, exc_info=error.details)
            return ResearchResult.failure(error)

        size_kb = report_size_kb(report)
        if decide(size_kb, self._remote) is DeliveryMode.OFFLOADED:
            result = await self._offloaded(params.query, report, outcome, size_kb, log)
        else:
            log.info("returning report inline", report_size_kb=size_kb, mode="stdio-inline")
            result = ResearchResult.from_text(
                render_inline(report), ResultMetadata.from_outcome(outcome, report_size_kb=size_kb))

        self._cache.put(key, result)
        return result

    async def _offloaded(self, query: str, report: str, outcome: ResearchOutcome, size_kb: int,
                         log: BoundLogger) -> ResearchResult:
        reason = offload_reason(self._remote)
        try:
            report_url = await self._store.offload(report, query)
        except Exception as e:
            log.error("report upload failed", error=str(e), report_size_kb=size_kb, mode=reason)
            report_url = OFFLOAD_ERROR_MARKER
        else:
            log.info("report uploaded successfully", report_url=report_url, report_size_kb=size_kb, mode=reason)

        text = render_offloaded(report_url=report_url, size_kb=size_kb, query=query, remote=self._remote)
        return ResearchResult.from_text(
            text, ResultMetadata.from_outcome(outcome, report_size_kb=size_kb, report_url=report_url))

    @staticmethod
    async def _read_report(outcome: ResearchOutcome, log: BoundLogger) -> str:
        """In-memory content first, then the reported file, then a placeholder."""
        if outcome.content:
            return outcome.content
        report = ""
        if outcome.report_path:
            try:
                report = await asyncio.to_thread(Path(outcome.report_path).read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                log.warning("report file unreadable", path=outcome.report_path, error=str(e))
                report = UNREADABLE_REPORT
        return report or MISSING_REPORT
