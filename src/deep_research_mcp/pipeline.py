"""Contracts for the external research collaborators.

The research pipeline (query expansion, retrieval, synthesis) and the report
writer live outside this package. They are plain callables, sync or async,
referenced from configuration by `module:attribute` import strings.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
from collections.abc import Awaitable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from .errors import PipelineLoadError
from .models import ResearchOutcome
from .progress import ProgressCallback


@runtime_checkable
class ResearchPipeline(Protocol):
    """`(query, depth, breadth, existing_learnings, on_progress) -> outcome`.

    The outcome may be a ResearchOutcome, a mapping with camelCase or
    snake_case keys, or any object exposing the same attributes.
    """

    def __call__(
        self,
        *,
        query: str,
        depth: int,
        breadth: int,
        existing_learnings: Sequence[str],
        on_progress: ProgressCallback | None = None,
    ) -> Any | Awaitable[Any]: ...


@runtime_checkable
class ReportWriter(Protocol):
    """`(query, learnings, visited_urls) -> report markdown`."""

    def __call__(self, *, query: str, learnings: Sequence[str], visited_urls: Sequence[str]) -> str | Awaitable[str]: ...


def load_callable(target: str) -> Any:
    """Resolve a `package.module:attribute` import string."""
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise PipelineLoadError(f"Expected 'module:attribute', got {target!r}")
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise PipelineLoadError(f"Cannot import {module_name!r}: {e}") from e
    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise PipelineLoadError(f"{module_name!r} has no attribute {attr_path!r}") from e
    if not callable(obj):
        raise PipelineLoadError(f"{target!r} is not callable")
    return obj


async def _call(fn: Any, **kwargs: Any) -> Any:
    """Await async callables; run blocking ones in a worker thread."""
    if inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None)):
        return await fn(**kwargs)
    result = await asyncio.to_thread(fn, **kwargs)
    return await result if inspect.isawaitable(result) else result


def coerce_outcome(raw: Any) -> ResearchOutcome:
    if isinstance(raw, ResearchOutcome):
        return raw
    if isinstance(raw, Mapping):
        return ResearchOutcome.model_validate(dict(raw))
    return ResearchOutcome.model_validate(raw, from_attributes=True)


async def invoke(
    pipeline: ResearchPipeline,
    *,
    query: str,
    depth: int,
    breadth: int,
    existing_learnings: Sequence[str] = (),
    on_progress: ProgressCallback | None = None,
) -> ResearchOutcome:
    """Run the pipeline to completion and normalize its outcome."""
    raw = await _call(
        pipeline,
        query=query,
        depth=depth,
        breadth=breadth,
        existing_learnings=list(existing_learnings),
        on_progress=on_progress,
    )
    return coerce_outcome(raw)


async def render_report(writer: ReportWriter, *, query: str, learnings: Sequence[str],
                        visited_urls: Sequence[str]) -> str:
    return await _call(writer, query=query, learnings=list(learnings), visited_urls=list(visited_urls))
