"""deep-research-mcp CLI.

Commands:
    deep-research-mcp serve     Run the MCP server (stdio, or HTTP/SSE with --http)
    deep-research-mcp run       Research a query locally and write the report to a file
    deep-research-mcp version   Print the server version
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from .config import SERVER_VERSION, DeepResearchSettings, get_settings
from .errors import PipelineLoadError
from .models import DEFAULT_BREADTH, DEFAULT_DEPTH
from .observability import configure_logging, get_logger

app = typer.Typer(
    name="deep-research-mcp",
    help="Deep research over MCP: cached, size-aware delivery across stdio, HTTP and SSE.",
    no_args_is_help=True,
)


def _setup(settings: DeepResearchSettings) -> None:
    configure_logging(format=settings.logging.format, level=settings.logging.level)


# ── serve ─────────────────────────────────────────────────────


@app.command()
def serve(
    http: Optional[bool] = typer.Option(None, "--http/--stdio", help="Override MCP_HTTP_MODE"),
    host: Optional[str] = typer.Option(None, "--host", help="Override MCP_HOST"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Override PORT"),
) -> None:
    """Run the MCP server."""
    from .bootstrap import serve as run_server

    settings = get_settings()
    overrides = {k: v for k, v in {"http_mode": http, "host": host, "port": port}.items() if v is not None}
    if overrides:
        settings = settings.model_copy(update={"server": settings.server.model_copy(update=overrides)})
    _setup(settings)

    try:
        run_server(settings)
    except PipelineLoadError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2) from e


# ── run ───────────────────────────────────────────────────────


@app.command()
def run(
    query: Optional[list[str]] = typer.Argument(None, help="Research query (prompted for when omitted)"),
    depth: int = typer.Option(DEFAULT_DEPTH, "--depth", "-d", min=1, max=5),
    breadth: int = typer.Option(DEFAULT_BREADTH, "--breadth", "-b", min=1, max=5),
    output: Path = typer.Option(Path("output.md"), "--output", "-o", help="Where to write the report"),
) -> None:
    """Research a query without the protocol layer and save the report."""
    settings = get_settings()
    _setup(settings)

    text = " ".join(query or []).strip()
    if text:
        typer.echo(f"Research query from command line: {text}")
    else:
        text = typer.prompt("What would you like to research?", default="", show_default=False).strip()
    if not text:
        typer.echo("Query empty.")
        return

    typer.echo(f"Starting research: {text} (Depth: {depth}, Breadth: {breadth})")
    try:
        asyncio.run(_run(settings, text, depth, breadth, output))
    except PipelineLoadError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2) from e
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    typer.echo(f"Done. Saved to {output}")


async def _run(settings: DeepResearchSettings, query: str, depth: int, breadth: int, output: Path) -> None:
    from .bootstrap import load_pipeline, load_report_writer
    from .pipeline import invoke, render_report
    from .progress import log_progress

    pipeline, writer = load_pipeline(settings), load_report_writer(settings)
    outcome = await invoke(pipeline, query=query, depth=depth, breadth=breadth,
                           on_progress=log_progress(get_logger("cli")))
    typer.echo("Writing report...")
    report = await render_report(writer, query=query, learnings=outcome.learnings,
                                 visited_urls=outcome.visited_urls)
    await asyncio.to_thread(output.write_text, report, encoding="utf-8")


# ── version ───────────────────────────────────────────────────


@app.command()
def version() -> None:
    """Print the server version."""
    typer.echo(SERVER_VERSION)


if __name__ == "__main__":
    app()
