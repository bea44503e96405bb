"""Registry of open SSE sessions.

Client-to-server messages arrive on a separate POST endpoint tagged with a
session id; the registry routes them to the live stream. A record exists
exactly while its stream is open.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import uuid4

if TYPE_CHECKING:
    from .sse import SSESession


@dataclass(slots=True, frozen=True)
class SessionRecord:
    """A live SSE connection and the protocol server attached to it."""
    session_id: str
    transport: SSESession
    server: Any = field(repr=False)


class SessionRegistry:
    """Session id → record map.

    Mutated only from the event loop and never across an await, so no lock.
    """

    __slots__ = ("_sessions",)

    def __init__(self) -> None:
        self._sessions: dict[str, SessionRecord] = {}

    def new_id(self) -> str:
        """A fresh id not held by any registered session."""
        while (session_id := uuid4().hex) in self._sessions:
            pass
        return session_id

    def register(self, record: SessionRecord) -> SessionRecord:
        if record.session_id in self._sessions:
            raise KeyError(f"Session {record.session_id!r} is already registered")
        self._sessions[record.session_id] = record
        return record

    def get(self, session_id: str | None) -> SessionRecord | None:
        return self._sessions.get(session_id) if session_id else None

    def remove(self, session_id: str) -> SessionRecord | None:
        return self._sessions.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))
