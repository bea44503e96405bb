"""Tests for the research dispatcher."""

from __future__ import annotations

import pytest

from deep_research_mcp.dispatcher import MISSING_REPORT, OFFLOAD_ERROR_MARKER, UNREADABLE_REPORT, RequestDispatcher
from deep_research_mcp.models import ResearchParams

from .fakes import FakeClock, FakePipeline, FakeStore, kb_report


# ─────────────────────────────────────────────────────────────────────────────
# Caching
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_second_identical_call_is_served_from_cache(stdio_dispatcher: RequestDispatcher,
                                                          pipeline: FakePipeline, logs) -> None:
    first = await stdio_dispatcher.dispatch({"query": "perovskite solar cells"})
    second = await stdio_dispatcher.dispatch({"query": "perovskite solar cells"})

    assert pipeline.call_count == 1
    assert second is first
    assert logs.events().count("cache miss") == 1
    assert logs.events().count("cache hit") == 1


@pytest.mark.asyncio
async def test_cache_hit_regardless_of_argument_order(stdio_dispatcher: RequestDispatcher,
                                                      pipeline: FakePipeline) -> None:
    await stdio_dispatcher.dispatch({"query": "q", "depth": 3, "breadth": 1, "existingLearnings": ["a"]})
    await stdio_dispatcher.dispatch({"existingLearnings": ["a"], "breadth": 1, "depth": 3, "query": "q"})
    assert pipeline.call_count == 1


@pytest.mark.asyncio
async def test_expired_entry_reruns_pipeline(stdio_dispatcher: RequestDispatcher, pipeline: FakePipeline,
                                             clock: FakeClock) -> None:
    await stdio_dispatcher.dispatch({"query": "q"})
    clock.advance(599)
    await stdio_dispatcher.dispatch({"query": "q"})
    assert pipeline.call_count == 1

    clock.advance(2)
    await stdio_dispatcher.dispatch({"query": "q"})
    assert pipeline.call_count == 2


@pytest.mark.asyncio
async def test_different_requests_are_cached_separately(stdio_dispatcher: RequestDispatcher,
                                                        pipeline: FakePipeline) -> None:
    await stdio_dispatcher.dispatch({"query": "q", "depth": 1})
    await stdio_dispatcher.dispatch({"query": "q", "depth": 2})
    assert pipeline.call_count == 2


@pytest.mark.asyncio
async def test_pipeline_receives_defaults(stdio_dispatcher: RequestDispatcher, pipeline: FakePipeline) -> None:
    await stdio_dispatcher.dispatch({"query": "q"})
    assert pipeline.calls == [{"query": "q", "depth": 2, "breadth": 2, "existing_learnings": []}]


# ─────────────────────────────────────────────────────────────────────────────
# Delivery
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_small_report_on_stdio_is_inline(stdio_dispatcher: RequestDispatcher, pipeline: FakePipeline,
                                               store: FakeStore) -> None:
    pipeline.content = kb_report(49)
    result = await stdio_dispatcher.run(ResearchParams(query="q"))

    assert store.uploads == []
    assert pipeline.content in result.text
    assert result.metadata.report_url is None
    assert result.metadata.report_size_kb == 49


@pytest.mark.asyncio
async def test_large_report_on_stdio_is_offloaded(stdio_dispatcher: RequestDispatcher, pipeline: FakePipeline,
                                                  store: FakeStore, logs) -> None:
    pipeline.content = kb_report(51)
    result = await stdio_dispatcher.run(ResearchParams(query="q"))

    assert len(store.uploads) == 1
    assert store.uploads[0] == (pipeline.content, "q")
    assert result.metadata.report_url == "https://storage.example/reports/1?sig=abc"
    assert result.metadata.report_size_kb == 51
    assert "exceeds 50 KB threshold" in result.text
    uploaded = next(e for e in logs.entries if e.event == "report uploaded successfully")
    assert uploaded.context["mode"] == "size-threshold"


@pytest.mark.asyncio
async def test_http_mode_always_offloads(http_dispatcher: RequestDispatcher, pipeline: FakePipeline,
                                         store: FakeStore, logs) -> None:
    pipeline.content = "tiny"
    result = await http_dispatcher.run(ResearchParams(query="q"))

    assert len(store.uploads) == 1
    assert "curl -L" in result.text
    assert "tiny" not in result.text
    uploaded = next(e for e in logs.entries if e.event == "report uploaded successfully")
    assert uploaded.context["mode"] == "http"


@pytest.mark.asyncio
async def test_metadata_carries_learnings_and_sources(stdio_dispatcher: RequestDispatcher) -> None:
    result = await stdio_dispatcher.run(ResearchParams(query="q"))
    wire = result.to_wire()

    assert wire["metadata"]["learnings"] == ["learning one", "learning two"]
    assert wire["metadata"]["visitedUrls"] == ["https://example.com/a"]
    assert wire["metadata"]["stats"] == {"totalLearnings": 2, "totalSources": 1}
    assert "reportUrl" not in wire["metadata"]
    assert wire["content"][0]["type"] == "text"
    assert "isError" not in wire


# ─────────────────────────────────────────────────────────────────────────────
# Failure handling
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_storage_failure_yields_error_marker(pipeline: FakePipeline, cache, logs) -> None:
    dispatcher = RequestDispatcher(pipeline, cache, FakeStore(fail=True), remote=True)
    result = await dispatcher.run(ResearchParams(query="q"))

    assert result.metadata.report_url == OFFLOAD_ERROR_MARKER
    assert OFFLOAD_ERROR_MARKER in result.text
    assert not result.is_error
    assert "report upload failed" in logs.events("error")


@pytest.mark.asyncio
async def test_pipeline_failure_returns_error_result(stdio_dispatcher: RequestDispatcher,
                                                     pipeline: FakePipeline, cache, logs) -> None:
    pipeline.raises = RuntimeError("model overloaded")
    result = await stdio_dispatcher.run(ResearchParams(query="q"))

    assert result.is_error
    assert result.text == "Error during deep research: model overloaded"
    assert result.metadata.learnings == ()
    assert result.metadata.stats.total_sources == 0
    assert len(cache) == 0
    assert "research failed" in logs.events("error")


@pytest.mark.asyncio
async def test_malformed_pipeline_outcome_is_a_pipeline_error(stdio_dispatcher: RequestDispatcher,
                                                              pipeline: FakePipeline) -> None:
    pipeline.learnings = [{"not": "a string"}]  # type: ignore[list-item]
    result = await stdio_dispatcher.dispatch({"query": "q"})

    assert result.is_error
    assert result.text.startswith("Error during deep research:")
    assert "Invalid research request" not in result.text
    assert result.metadata.learnings == ()


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [RuntimeError("   "), RuntimeError(""), ValueError("\n\t")])
async def test_blank_exception_message_still_yields_error_result(stdio_dispatcher: RequestDispatcher,
                                                                 pipeline: FakePipeline, exc: Exception) -> None:
    pipeline.raises = exc
    result = await stdio_dispatcher.dispatch({"query": "q"})

    assert result.is_error
    assert result.text == f"Error during deep research: {type(exc).__name__}"
    assert result.metadata.stats.total_learnings == 0


@pytest.mark.asyncio
async def test_failures_are_not_cached(stdio_dispatcher: RequestDispatcher, pipeline: FakePipeline) -> None:
    pipeline.raises = RuntimeError("boom")
    await stdio_dispatcher.dispatch({"query": "q"})
    pipeline.raises = None
    result = await stdio_dispatcher.dispatch({"query": "q"})

    assert pipeline.call_count == 2
    assert not result.is_error


@pytest.mark.asyncio
@pytest.mark.parametrize("arguments", [{}, {"query": ""}, {"query": "   "}, {"query": "q", "depth": 9},
                                       {"query": "q", "breadth": 0}])
async def test_invalid_input_never_reaches_pipeline(stdio_dispatcher: RequestDispatcher, pipeline: FakePipeline,
                                                    arguments: dict[str, object]) -> None:
    result = await stdio_dispatcher.dispatch(arguments)

    assert result.is_error
    assert result.text.startswith("Invalid research request:")
    assert pipeline.call_count == 0


@pytest.mark.asyncio
async def test_pipeline_receives_input_verbatim(stdio_dispatcher: RequestDispatcher,
                                                pipeline: FakePipeline) -> None:
    await stdio_dispatcher.dispatch({"query": "  solar sails ", "existingLearnings": ["  fact  "]})

    assert pipeline.calls[0]["query"] == "  solar sails "
    assert pipeline.calls[0]["existing_learnings"] == ["  fact  "]


# ─────────────────────────────────────────────────────────────────────────────
# Report retrieval
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reads_report_path_when_content_missing(stdio_dispatcher: RequestDispatcher,
                                                      pipeline: FakePipeline, tmp_path) -> None:
    report = tmp_path / "report.md"
    report.write_text("# From disk", encoding="utf-8")
    pipeline.content, pipeline.report_path = None, str(report)

    result = await stdio_dispatcher.run(ResearchParams(query="q"))
    assert "# From disk" in result.text


@pytest.mark.asyncio
async def test_in_memory_content_wins_over_path(stdio_dispatcher: RequestDispatcher, pipeline: FakePipeline,
                                                tmp_path) -> None:
    report = tmp_path / "report.md"
    report.write_text("# From disk", encoding="utf-8")
    pipeline.content, pipeline.report_path = "# In memory", str(report)

    result = await stdio_dispatcher.run(ResearchParams(query="q"))
    assert "# In memory" in result.text
    assert "# From disk" not in result.text


@pytest.mark.asyncio
async def test_unreadable_report_path_uses_placeholder(stdio_dispatcher: RequestDispatcher,
                                                       pipeline: FakePipeline, tmp_path) -> None:
    pipeline.content, pipeline.report_path = None, str(tmp_path / "missing.md")

    result = await stdio_dispatcher.run(ResearchParams(query="q"))
    assert not result.is_error
    assert UNREADABLE_REPORT in result.text


@pytest.mark.asyncio
async def test_no_report_at_all_uses_placeholder(stdio_dispatcher: RequestDispatcher,
                                                 pipeline: FakePipeline) -> None:
    pipeline.content = None
    result = await stdio_dispatcher.run(ResearchParams(query="q"))
    assert MISSING_REPORT in result.text


@pytest.mark.asyncio
async def test_progress_is_logged(stdio_dispatcher: RequestDispatcher, logs) -> None:
    await stdio_dispatcher.run(ResearchParams(query="graphene"))
    assert "researching: graphene" in logs.events()


@pytest.mark.asyncio
async def test_every_call_event_carries_query_and_key(stdio_dispatcher: RequestDispatcher, logs) -> None:
    await stdio_dispatcher.run(ResearchParams(query="graphene"))
    await stdio_dispatcher.run(ResearchParams(query="graphene"))

    call_events = [e for e in logs.entries if e.context.get("logger") == "dispatcher"]
    assert {"cache miss", "research started", "research completed", "returning report inline",
            "cache hit"} <= {e.event for e in call_events}
    assert all(e.context["query"] == "graphene" for e in call_events)
    assert len({e.context["key"] for e in call_events}) == 1
