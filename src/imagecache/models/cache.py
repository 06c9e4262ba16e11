from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, model_validator

# Fields that are recomputed on every read and never written to disk.
TRANSIENT_FIELDS: frozenset[str] = frozenset({"size", "cache_status"})


class CacheStatus(StrEnum):
    HIT = "HIT"
    MISS = "MISS"


class CacheRecord(BaseModel):
    """One cached image, or the failure to fetch one."""

    url: str  # Original URL, never the proxy-rewritten one
    hash_key: str  # Cache key naming the backing file
    compressed: bool = False
    timestamp: datetime | None = None  # Set once, when the image was fetched
    data: str | None = None  # data: URI with the base64 image body
    size: str | None = None  # Human-readable size of the backing file
    cache_status: CacheStatus | None = None
    error: bool = False
    status_code: int | None = None
    status_message: str | None = None

    @model_validator(mode="after")
    def check_payload(self) -> CacheRecord:
        if self.error and self.data is not None:
            raise ValueError("a failed record cannot carry data")
        if not self.error and self.data is None:
            raise ValueError("a successful record must carry data")
        return self


class FetchResponse(BaseModel):
    """What the fetcher returns for one URL."""

    status_code: int
    status_message: str = ""
    body: str | None = None  # Only present for status 200

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class FlushResult(BaseModel):
    deleted: int
    total_files: int
    dir: Path
