"""Record serialisation for on-disk storage.

Records are stored as JSON. In compressed mode the JSON text is
additionally zlib-deflated. ``size`` and ``cache_status`` are never written.
"""

from __future__ import annotations

import zlib

from pydantic import ValidationError

from imagecache.errors import MalformedRecordError
from imagecache.models.cache import TRANSIENT_FIELDS, CacheRecord


def encode(record: CacheRecord, compressed: bool) -> bytes:
    text = record.model_dump_json(exclude=set(TRANSIENT_FIELDS))
    raw = text.encode("utf-8")
    if compressed:
        return zlib.compress(raw)
    return raw


def decode(raw: bytes, compressed: bool) -> CacheRecord:
    """Inverse of :func:`encode` under the same ``compressed`` flag.

    Raises MalformedRecordError when ``raw`` is not a record in that mode,
    e.g. deflated bytes read back with ``compressed=False``.
    """
    try:
        if compressed:
            raw = zlib.decompress(raw)
        # utf-8-sig drops a leading BOM left by hand-edited files
        text = raw.decode("utf-8-sig")
        return CacheRecord.model_validate_json(text)
    except (zlib.error, UnicodeDecodeError, ValidationError) as exc:
        mode = "compressed" if compressed else "plain"
        raise MalformedRecordError(
            f"Cached record is not valid {mode} data: {exc}",
            suggestion=(
                "Check that 'compressed' matches the mode the cache was written in, "
                "or delete the entry and fetch it again."
            ),
        ) from exc
