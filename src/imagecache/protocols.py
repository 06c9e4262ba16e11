"""Protocol interfaces for swappable components.

CacheService references these protocols, not the concrete implementations.
This allows:
- Tests to use lightweight in-memory implementations
- Other backends (e.g. object storage) to be swapped without changing the service
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from imagecache.config import CacheConfiguration
    from imagecache.models.cache import FetchResponse


class StoreProtocol(Protocol):
    """Interface for the record persistence backend."""

    async def exists(self, key: str, config: CacheConfiguration) -> bool: ...

    async def read(self, key: str, config: CacheConfiguration) -> bytes: ...

    async def write(self, key: str, data: bytes, config: CacheConfiguration) -> None: ...

    async def delete(self, key: str, config: CacheConfiguration) -> None: ...

    async def list_entries(self, config: CacheConfiguration) -> list[str]: ...

    # Backs CacheService.keys. flush uses list_entries so its deleted and total
    # counts come from one listing.
    async def list_all(self, config: CacheConfiguration) -> list[str]: ...

    async def ensure_directory(self, config: CacheConfiguration) -> None: ...

    async def size_of(self, key: str, config: CacheConfiguration) -> int: ...


class FetcherProtocol(Protocol):
    """Interface for the HTTP image fetcher."""

    async def fetch(self, url: str, *, use_proxy: bool = False) -> FetchResponse: ...
