"""stdio binding: one protocol server on stdin/stdout for the process lifetime."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..observability import get_logger

if TYPE_CHECKING:
    from ..server import ServerFactory

log = get_logger("transport.stdio")


def serve_stdio(factory: ServerFactory) -> None:
    """Run a single implicit session until stdin closes. Errors propagate and end the process."""
    mcp = factory()
    log.info("mcp server running", mode="stdio")
    mcp.run(transport="stdio")
