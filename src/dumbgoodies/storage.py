from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import httpx

from dumbgoodies.config import settings
from dumbgoodies.errors import FetchError

log = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def date_prefix(now: datetime | None = None) -> str:
    return (now or _now()).strftime("%Y-%m-%d")


def _safe_rel_path(path: str) -> str:
    # Keep bucket paths relative and free of traversal.
    parts = [p for p in path.replace("\\", "/").split("/") if p not in ("", ".", "..")]
    if not parts:
        raise ValueError("empty storage path")
    return "/".join(parts)


@dataclass(frozen=True)
class StoredObject:
    bucket: str
    path: str
    url: str
    content_type: str
    size: int


class BucketStore:
    """
    Bucket-per-purpose object storage on the local filesystem.

    Objects live at {root}/{bucket}/{path}; the public URL is deterministic from
    bucket + path, and the API mounts the root under /files to serve them.
    """

    def __init__(self, root_dir: Path | None = None, public_base_url: str | None = None) -> None:
        self.root_dir = Path(root_dir or Path(settings.data_dir) / "buckets").resolve()
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/{bucket}/{_safe_rel_path(path)}"

    def put(self, bucket: str, path: str, data: bytes, content_type: str = "image/png") -> StoredObject:
        rel = _safe_rel_path(path)
        abs_path = self.root_dir / _safe_rel_path(bucket) / rel
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        # upsert: a rewrite of the same path replaces the object
        tmp = abs_path.with_name(abs_path.name + ".part")
        tmp.write_bytes(data)
        os.replace(tmp, abs_path)
        log.debug("stored %s/%s (%d bytes, %s)", bucket, rel, len(data), content_type)
        return StoredObject(
            bucket=bucket,
            path=rel,
            url=self.public_url(bucket, rel),
            content_type=content_type,
            size=len(data),
        )

    def owns(self, url: str) -> bool:
        return url.startswith(self.public_base_url + "/")

    def read_url(self, url: str) -> bytes:
        if not self.owns(url):
            raise FetchError(f"not a bucket url: {url}")
        rel = _safe_rel_path(url[len(self.public_base_url) + 1 :].split("?", 1)[0])
        abs_path = self.root_dir / rel
        if not abs_path.is_file():
            raise FetchError(f"object not found: {url}")
        return abs_path.read_bytes()


async def fetch_image_bytes(url: str, buckets: BucketStore | None = None, timeout: float | None = None) -> bytes:
    """Read one of our own bucket URLs locally, or download anything else."""
    if buckets is not None and buckets.owns(url):
        return buckets.read_url(url)

    try:
        async with httpx.AsyncClient(timeout=timeout or settings.fetch_timeout_s, follow_redirects=True) as h:
            r = await h.get(url)
            r.raise_for_status()
            return r.content
    except httpx.HTTPError as exc:
        raise FetchError(f"Failed to fetch {url}: {exc}") from exc
