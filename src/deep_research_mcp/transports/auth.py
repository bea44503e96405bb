"""API-key gate for the HTTP-exposed endpoints.

With no key configured every request passes (development mode). Otherwise
the key must arrive as `x-api-key` or `Authorization: Bearer <key>`.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from pydantic import SecretStr
from starlette.responses import JSONResponse, Response

from ..observability import get_logger

if TYPE_CHECKING:
    from starlette.requests import Request

log = get_logger("transport.auth")

_BEARER = "bearer "


class ApiKeyGate:
    """Checks requests against the configured key."""

    __slots__ = ("_key",)

    def __init__(self, api_key: SecretStr | str | None) -> None:
        raw = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        self._key = raw or None

    @property
    def enabled(self) -> bool:
        return self._key is not None

    @staticmethod
    def provided_key(request: Request) -> str | None:
        if key := request.headers.get("x-api-key"):
            return key
        auth = request.headers.get("authorization", "")
        return auth[len(_BEARER):].strip() if auth.lower().startswith(_BEARER) else (auth or None)

    def allows(self, request: Request) -> bool:
        if self._key is None:
            return True
        provided = self.provided_key(request)
        return provided is not None and secrets.compare_digest(provided.encode(), self._key.encode())

    def check(self, request: Request) -> Response | None:
        """None if the request may proceed, else the 401 response to send."""
        if self.allows(request):
            return None
        log.warning("unauthorized request", path=request.url.path,
                    client=request.client.host if request.client else None)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
