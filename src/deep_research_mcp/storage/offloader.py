"""Offload oversized reports to S3-compatible object storage.

Each report is written under `<prefix><query slug>_<timestamp>_<nonce>.md`
and handed back as a presigned GET URL valid for seven days. Works against
AWS S3 and S3-compatible endpoints (GCS interoperability, MinIO) via
`REPORT_STORAGE_ENDPOINT_URL`.
"""

from __future__ import annotations

import asyncio
import re
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable
from urllib.parse import quote

from ..config import SIGNED_URL_TTL_SECONDS
from ..errors import StorageError
from ..observability import get_logger

if TYPE_CHECKING:
    from ..config import StorageSettings

CONTENT_TYPE = "text/markdown; charset=utf-8"
SLUG_MAX_CHARS = 50

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")

log = get_logger("storage")


@runtime_checkable
class ReportStore(Protocol):
    """Anything that can park a report and return a retrieval URL."""

    async def offload(self, content: str, query: str) -> str: ...


def report_key(query: str, now: datetime, *, prefix: str = "reports/", nonce: str | None = None) -> str:
    """Storage key from a sanitized, length-capped slug and a timestamp suffix."""
    slug = _NON_ALNUM.sub("_", query[:SLUG_MAX_CHARS]) or "report"
    stamp = now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    stamp = stamp.replace(":", "-").replace(".", "-")
    nonce = nonce if nonce is not None else secrets.token_hex(3)
    return f"{prefix}{slug}_{stamp}_{nonce}.md"


class BlobOffloader:
    """S3 offloader producing presigned retrieval URLs.

    boto3 is blocking, so uploads and signing run in a worker thread.

    Args:
        bucket: Target bucket
        client: boto3 S3 client (created from settings when omitted)
        prefix: Key prefix for reports
        url_ttl: Presigned URL lifetime in seconds
        clock: Wall-clock source for keys and audit metadata

    Example:
        >>> offloader = BlobOffloader.from_settings(settings.storage)
        >>> url = await offloader.offload(report, "solid state batteries")
    """

    __slots__ = ("_bucket", "_client", "_prefix", "_url_ttl", "_clock")

    def __init__(
        self,
        bucket: str,
        client: Any,
        *,
        prefix: str = "reports/",
        url_ttl: int = SIGNED_URL_TTL_SECONDS,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._bucket = bucket
        self._client = client
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""
        self._url_ttl = url_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> BlobOffloader:
        import boto3

        kwargs: dict[str, str] = {}
        if settings.region:
            kwargs["region_name"] = settings.region
        if settings.endpoint_url:
            kwargs["endpoint_url"] = settings.endpoint_url
        return cls(settings.bucket, boto3.client("s3", **kwargs), prefix=settings.prefix,
                   url_ttl=settings.signed_url_ttl)

    @property
    def bucket(self) -> str:
        return self._bucket

    async def offload(self, content: str, query: str) -> str:
        """Upload `content` and return a presigned URL. Raises StorageError on any failure."""
        now = self._clock()
        key = report_key(query, now, prefix=self._prefix)
        try:
            await asyncio.to_thread(self._put, key, content, query, now)
            url: str = await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=self._url_ttl,
            )
        except Exception as e:
            raise StorageError(f"Failed to store report in {self._bucket}: {e}", key=key) from e
        log.info("report uploaded", key=key, bucket=self._bucket)
        return url

    def _put(self, key: str, content: str, query: str, now: datetime) -> None:
        # S3 user metadata must be ASCII
        self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=content.encode("utf-8"),
            ContentType=CONTENT_TYPE,
            Metadata={"query": quote(query, safe=" "), "generated-at": now.isoformat()},
        )
