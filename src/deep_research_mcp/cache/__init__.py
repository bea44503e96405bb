"""Result caching keyed by request fingerprint."""

from .cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL, CacheEntry, ResultCache
from .keys import fingerprint, make_key

__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "DEFAULT_TTL",
    "CacheEntry",
    "ResultCache",
    "fingerprint",
    "make_key",
]
