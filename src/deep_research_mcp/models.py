"""Value objects crossing the dispatcher boundary.

- ResearchParams: validated tool-call input (camelCase on the wire)
- ResearchOutcome: what the external pipeline hands back
- ResearchResult: the delivered tool result, cached verbatim and never mutated
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from .errors import ResearchError

DEFAULT_DEPTH = 2
DEFAULT_BREADTH = 2


class ResearchFlags(BaseModel):
    """Per-call pipeline feature toggles."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    grounding: bool | None = None
    url_context: bool | None = Field(default=None, alias="urlContext")


class ResearchParams(BaseModel):
    """Input of the `deepResearch.run` tool."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    query: Annotated[str, Field(min_length=1, description="The research query to investigate")]
    depth: Annotated[int | None, Field(ge=1, le=5, description="How deep to go in the research tree (1-5)")] = None
    breadth: Annotated[int | None, Field(ge=1, le=5, description="How broad to make each research level (1-5)")] = None
    existing_learnings: tuple[str, ...] = Field(
        default=(), alias="existingLearnings", description="Optional learnings to build upon")
    goal: str | None = Field(default=None, description="Optional goal/brief to steer synthesis")
    flags: ResearchFlags | None = None

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, v: str) -> str:
        """Reject whitespace-only queries; the query itself is passed on untouched."""
        if not v.strip():
            raise ValueError("query must not be blank")
        return v

    @property
    def effective_depth(self) -> int:
        return self.depth if self.depth is not None else DEFAULT_DEPTH

    @property
    def effective_breadth(self) -> int:
        return self.breadth if self.breadth is not None else DEFAULT_BREADTH

    def fingerprint_fields(self) -> dict[str, Any]:
        """The inputs that identify a logical request; goal and flags only steer synthesis."""
        return {
            "query": self.query,
            "depth": self.effective_depth,
            "breadth": self.effective_breadth,
            "existingLearnings": list(self.existing_learnings),
        }


class ResearchOutcome(BaseModel):
    """Pipeline output. `content` wins over `report_path` when both are present."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True, extra="ignore")

    learnings: list[str] = Field(default_factory=list)
    visited_urls: list[str] = Field(default_factory=list, alias="visitedUrls")
    report_path: str | None = Field(default=None, alias="reportPath")
    content: str | None = None


class TextContent(BaseModel):
    """Protocol text content block."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ResultStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_learnings: int = Field(default=0, alias="totalLearnings")
    total_sources: int = Field(default=0, alias="totalSources")


class ResultMetadata(BaseModel):
    """Metadata attached to every tool result."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    learnings: tuple[str, ...] = ()
    visited_urls: tuple[str, ...] = Field(default=(), alias="visitedUrls")
    stats: ResultStats = Field(default_factory=ResultStats)
    report_url: str | None = Field(default=None, alias="reportUrl")
    report_size_kb: int | None = Field(default=None, alias="reportSizeKB")

    @classmethod
    def from_outcome(cls, outcome: ResearchOutcome, *, report_size_kb: int, report_url: str | None = None) -> Self:
        return cls(
            learnings=tuple(outcome.learnings),
            visited_urls=tuple(outcome.visited_urls),
            stats=ResultStats(total_learnings=len(outcome.learnings), total_sources=len(outcome.visited_urls)),
            report_url=report_url,
            report_size_kb=report_size_kb,
        )


class ResearchResult(BaseModel):
    """Delivered tool result: content blocks plus metadata."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: tuple[TextContent, ...]
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def from_text(cls, text: str, metadata: ResultMetadata) -> Self:
        return cls(content=(TextContent(text=text),), metadata=metadata)

    @classmethod
    def failure(cls, error: ResearchError) -> Self:
        """Well-formed error result: one text block, empty metadata."""
        return cls(content=(TextContent(text=error.render()),), metadata=ResultMetadata(), is_error=True)

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)

    def to_wire(self) -> dict[str, Any]:
        """camelCase dict as returned to protocol clients."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not self.is_error:
            data.pop("isError", None)
        return data
