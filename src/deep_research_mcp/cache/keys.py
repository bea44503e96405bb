"""Request fingerprints for the result cache."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..models import ResearchParams


def make_key(fields: Mapping[str, object]) -> str:
    """SHA-256 hex digest of the canonical JSON form of `fields`.

    Keys are sorted so mapping order never changes the digest. If the values
    cannot be serialized the digest falls back to `repr()`; a degraded key can
    only cost a cache miss.
    """
    try:
        canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        canonical = repr(fields)
    return hashlib.sha256(canonical.encode("utf-8", "surrogatepass")).hexdigest()


def fingerprint(params: ResearchParams) -> str:
    """Fingerprint of a validated research request."""
    return make_key(params.fingerprint_fields())
