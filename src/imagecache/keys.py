"""Cache key derivation and URL normalisation.

Pure functions, no I/O.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

COMPRESSED_SUFFIX = "_min"


def derive_key(url: str, compressed: bool) -> str:
    """Return the cache key naming the file for ``url``.

    The compressed and plain caches of one URL get distinct keys so the two
    on-disk formats never collide: ``'3f1c…'`` vs ``'3f1c…_min'``.
    """
    digest = hashlib.md5(url.encode("utf-8"), usedforsecurity=False).hexdigest()
    return digest + COMPRESSED_SUFFIX if compressed else digest


def normalize_urls(urls: str | Iterable[str]) -> list[str]:
    """Turn a single URL or an iterable of URLs into a list of URLs."""
    if isinstance(urls, str):
        result = [urls]
    else:
        result = list(urls)
    if not result:
        raise ValueError("at least one URL is required")
    for url in result:
        if not isinstance(url, str) or not url:
            raise ValueError(f"URLs must be non-empty strings, got {url!r}")
    return result
