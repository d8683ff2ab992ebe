from __future__ import annotations

import logging
import uuid

from dumbgoodies.assembly.images import normalize_to_png
from dumbgoodies.errors import ImageDecodeError
from dumbgoodies.storage import BucketStore, StoredObject, date_prefix

log = logging.getLogger(__name__)

_EXT_BY_MIME = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/svg+xml": "svg",
}


def store_upload(
    buckets: BucketStore,
    bucket: str,
    data: bytes,
    content_type: str | None,
    normalize: bool = True,
) -> StoredObject:
    """
    Store one uploaded image at {date}/{uuid}.{ext}.

    With normalize on, decodable images are re-encoded to PNG; anything Pillow
    cannot read (SVG included) is stored as-is under its own MIME type.
    """
    mime = (content_type or "").split(";")[0].strip().lower() or "image/png"
    payload, ext, out_type = data, _EXT_BY_MIME.get(mime, "png"), mime

    if normalize and mime != "image/svg+xml":
        try:
            payload, ext, out_type = normalize_to_png(data), "png", "image/png"
        except ImageDecodeError as exc:
            log.info("upload kept as original bytes (%s): %s", mime, exc)

    path = f"{date_prefix()}/{uuid.uuid4()}.{ext}"
    return buckets.put(bucket, path, payload, out_type)
