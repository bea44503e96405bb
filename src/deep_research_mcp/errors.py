"""Error codes, structured errors and protocol-formatted error bodies.

Nothing above the transport layer is allowed to fail a connection: the
dispatcher turns failures into `ResearchError.render()` text, and the HTTP
bindings answer with JSON-RPC shaped error objects.
"""

from __future__ import annotations

import traceback
from enum import IntEnum, StrEnum
from functools import lru_cache
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ErrorCode(StrEnum):
    """Machine-readable failure classes."""
    INVALID_PARAMS = "INVALID_PARAMS"
    PIPELINE_ERROR = "PIPELINE_ERROR"
    REPORT_UNAVAILABLE = "REPORT_UNAVAILABLE"
    STORAGE_ERROR = "STORAGE_ERROR"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    UNKNOWN = "UNKNOWN"


class JsonRpcCode(IntEnum):
    """JSON-RPC error codes used by the HTTP bindings."""
    SERVER_ERROR = -32000
    INVALID_REQUEST = -32600
    INTERNAL_ERROR = -32603


_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "connection": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "rate": ErrorCode.RATE_LIMITED,
    "quota": ErrorCode.RATE_LIMITED,
    "storage": ErrorCode.STORAGE_ERROR,
    "bucket": ErrorCode.STORAGE_ERROR,
    "filenotfound": ErrorCode.REPORT_UNAVAILABLE,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES)


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.PIPELINE_ERROR


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code via pattern matching on name/message."""
    return _classify_cached(f"{type(exc).__name__} {exc}")


class ResearchError(BaseModel):
    """Structured failure of a research tool call.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        recoverable: Whether the call might succeed on retry
        details: Optional detail (stack trace) for logs, never rendered to clients
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = True
    details: str | None = Field(default=None, repr=False)

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | Exception) -> str:
        """Accept Exception objects and extract message."""
        return (str(v).strip() or type(v).__name__) if isinstance(v, Exception) else v

    @classmethod
    def from_exception(cls, exc: Exception, *, include_trace: bool = True) -> Self:
        """Create from exception with auto-classification."""
        return cls(
            message=exc,  # type: ignore[arg-type]
            code=classify_exception(exc),
            details=traceback.format_exc() if include_trace else None,
        )

    def render(self) -> str:
        """Format error as tool-call content text."""
        if self.code is ErrorCode.INVALID_PARAMS:
            return f"Invalid research request: {self.message}"
        return f"Error during deep research: {self.message}"

    __str__ = render


class StorageError(Exception):
    """Offloading a report to object storage failed."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class PipelineLoadError(Exception):
    """A configured collaborator import string could not be resolved."""


def jsonrpc_error(code: JsonRpcCode | int, message: str, request_id: Any = None) -> dict[str, Any]:
    """JSON-RPC 2.0 error envelope (id is null when the request could not be read)."""
    return {"jsonrpc": "2.0", "error": {"code": int(code), "message": message}, "id": request_id}
