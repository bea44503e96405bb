"""Progress reporting for long-running research calls.

The pipeline pushes `ResearchProgress` snapshots into a callback while it
works. Progress is a one-way notification: the dispatcher only logs it and
never branches on it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .observability import BoundLogger


@dataclass(slots=True, kw_only=True)
class ResearchProgress:
    """Snapshot of how far the research tree has been explored.

    Example:
        >>> p = ResearchProgress(total_queries=4, completed_queries=1)
        >>> p.percentage
        25.0
    """
    current_depth: int = 0
    total_depth: int = 0
    current_breadth: int = 0
    total_breadth: int = 0
    current_query: str | None = None
    total_queries: int = 0
    completed_queries: int = 0

    @property
    def percentage(self) -> float | None:
        if not self.total_queries:
            return None
        return round(self.completed_queries / self.total_queries * 100, 1)

    @classmethod
    def coerce(cls, value: ResearchProgress | Mapping[str, object]) -> ResearchProgress:
        """Accept a snapshot or a camelCase/snake_case mapping from the pipeline."""
        if isinstance(value, ResearchProgress):
            return value
        known = {f.name for f in fields(cls)}
        data = {_snake(k): v for k, v in value.items()}
        return cls(**{k: v for k, v in data.items() if k in known})  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, object]:
        return {k: v for k, v in asdict(self).items() if v not in (None, 0)}


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for progress event handlers."""

    def __call__(self, progress: ResearchProgress) -> None: ...


def log_progress(log: BoundLogger) -> ProgressCallback:
    """Progress sink that writes each snapshot to the structured log."""

    def _sink(progress: ResearchProgress | Mapping[str, object]) -> None:
        p = ResearchProgress.coerce(progress)
        log.info(f"researching: {p.current_query or '...'}", **p.to_dict())

    return _sink  # type: ignore[return-value]


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)
