from __future__ import annotations

from imagecache.models.cache import CacheRecord, CacheStatus, FetchResponse, FlushResult

__all__ = [
    "CacheRecord",
    "CacheStatus",
    "FetchResponse",
    "FlushResult",
]
