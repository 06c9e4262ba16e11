"""Cache orchestration: single-item operations and batch fetch-or-serve.

The filesystem is the only source of truth; nothing is held in memory
between calls. Each operation snapshots the configuration once at entry
and passes it explicitly to the store and codec, so a concurrent
``configure`` call never changes the rules halfway through a batch.

Batch items run concurrently and always run to completion. Soft failures
(non-200 responses) are embedded per item; the first hard failure in input
order is raised once every item has finished.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import ValidationError

from imagecache import codec
from imagecache.config import CacheConfiguration, Settings
from imagecache.errors import (
    EmptyDirectoryError,
    FetchStatusError,
    InvalidOptionError,
    NotFoundError,
    PartialFetchError,
    UnknownOptionError,
)
from imagecache.fetcher import Fetcher, build_http_client
from imagecache.keys import derive_key, normalize_urls
from imagecache.models.cache import CacheRecord, CacheStatus, FlushResult
from imagecache.store import FileStore, format_size, matching_keys

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Iterable

    from imagecache.protocols import FetcherProtocol, StoreProtocol

log = structlog.get_logger()

T = TypeVar("T")


async def _gather_all(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Await every item, then raise the first failure in input order."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results  # type: ignore[return-value]


class CacheService:
    """An image cache bound to one configuration, fetcher and store."""

    def __init__(
        self,
        config: CacheConfiguration,
        fetcher: FetcherProtocol,
        store: StoreProtocol | None = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._store: StoreProtocol = store if store is not None else FileStore()

    @property
    def config(self) -> CacheConfiguration:
        return self._config

    def configure(self, **options: Any) -> CacheConfiguration:
        """Replace the configuration with ``options`` applied on top of it.

        Accepts ``dir``, ``compressed``, ``extname`` and ``googleCache`` (or
        ``google_cache``). Raises UnknownOptionError for any other name and
        InvalidOptionError for a bad value; the previous configuration stays
        in effect on failure.
        """
        known = CacheConfiguration.option_names()
        unknown = sorted(name for name in options if name not in known)
        if unknown:
            raise UnknownOptionError(
                f"option {', '.join(repr(name) for name in unknown)} is not available",
                suggestion=f"Known options: {', '.join(sorted(known))}.",
            )

        aliases = {
            field.alias: name
            for name, field in CacheConfiguration.model_fields.items()
            if field.alias
        }
        merged = self._config.model_dump()
        for name, value in options.items():
            merged[aliases.get(name, name)] = value

        try:
            new_config = CacheConfiguration.model_validate(merged)
        except ValidationError as exc:
            raise InvalidOptionError(
                f"Invalid cache option value: {exc}",
                suggestion="Check the types of the options passed to configure().",
            ) from exc

        self._config = new_config
        log.info("configuration_updated", options=sorted(options))
        return new_config

    # ------------------------------------------------------------------
    # Single-item operations
    # ------------------------------------------------------------------

    async def is_cached(self, url: str) -> bool:
        config = self._config
        return await self._store.exists(derive_key(url, config.compressed), config)

    async def get(self, url: str) -> CacheRecord:
        """Read a cached record. Raises NotFoundError if ``url`` was never cached."""
        config = self._config
        return await self._read_hit(derive_key(url, config.compressed), config)

    async def set(self, urls: str | Iterable[str]) -> list[CacheRecord]:
        """Fetch and store every URL, replacing any existing entry.

        Returns the stored records. If some URLs came back non-200, raises
        PartialFetchError after the rest have been written. Hard failures
        (network, disk) raise as-is.
        """
        config = self._config
        url_list = list(dict.fromkeys(normalize_urls(urls)))
        await self._store.ensure_directory(config)

        records = await _gather_all(
            self._populate(url, derive_key(url, config.compressed), config) for url in url_list
        )
        stored = [record for record in records if not record.error]
        failures = [
            FetchStatusError(record.url, record.status_code or 0, record.status_message or "")
            for record in records
            if record.error
        ]
        if failures:
            log.warning(
                "cache_set_partial",
                stored=len(stored),
                failed=[failure.url for failure in failures],
            )
            raise PartialFetchError(failures, stored)
        return stored

    async def delete(self, urls: str | Iterable[str]) -> None:
        """Delete the entries for ``urls``.

        Strict: if any of them is not cached, raises NotFoundError before
        deleting anything.
        """
        config = self._config
        url_list = normalize_urls(urls)
        keys = [derive_key(url, config.compressed) for url in url_list]

        present = await _gather_all(self._store.exists(key, config) for key in keys)
        missing = [url for url, found in zip(url_list, present, strict=True) if not found]
        if missing:
            raise NotFoundError(
                f"Not cached: {', '.join(missing)}",
                suggestion="Only cached URLs can be deleted; check is_cached() first.",
            )

        await _gather_all(self._store.delete(key, config) for key in dict.fromkeys(keys))
        log.info("cache_delete", count=len(keys))

    async def flush(self) -> FlushResult:
        """Delete every file with the configured extension in the cache directory.

        Other files are left alone but counted in ``total_files``. Raises
        EmptyDirectoryError when the directory has no entries at all.
        """
        config = self._config
        entries = await self._store.list_entries(config)
        if not entries:
            raise EmptyDirectoryError(
                f"Cache directory {config.dir} is empty",
                suggestion="Nothing to flush.",
            )

        keys = matching_keys(entries, config)
        await _gather_all(self._store.delete(key, config) for key in keys)

        result = FlushResult(deleted=len(keys), total_files=len(entries), dir=config.dir)
        log.info(
            "cache_flush_complete",
            deleted=result.deleted,
            total_files=result.total_files,
            dir=str(result.dir),
        )
        return result

    async def keys(self) -> list[str]:
        """Keys of every cache file in the directory, in no particular order."""
        config = self._config
        return await self._store.list_all(config)

    # ------------------------------------------------------------------
    # Batch fetch-or-serve
    # ------------------------------------------------------------------

    async def fetch_images(self, urls: str | Iterable[str]) -> CacheRecord | list[CacheRecord]:
        """Serve each URL from cache, fetching and storing the ones that are missing.

        Records are tagged HIT or MISS. A non-200 response yields a record
        with ``error=True`` and the status instead of failing the batch.
        One URL in gives a bare record back; otherwise a list in input order.
        """
        config = self._config
        url_list = normalize_urls(urls)
        await self._store.ensure_directory(config)

        records = await _gather_all(self._fetch_one(url, config) for url in url_list)
        if len(records) == 1:
            return records[0]
        return records

    async def _fetch_one(self, url: str, config: CacheConfiguration) -> CacheRecord:
        key = derive_key(url, config.compressed)
        if await self._store.exists(key, config):
            log.info("cache_hit", url=url, key=key)
            return await self._read_hit(key, config)
        log.info("cache_miss_fetching", url=url, key=key)
        return await self._populate(url, key, config)

    async def _read_hit(self, key: str, config: CacheConfiguration) -> CacheRecord:
        raw = await self._store.read(key, config)
        record = codec.decode(raw, config.compressed)
        size = await self._store.size_of(key, config)
        return record.model_copy(
            update={"size": format_size(size), "cache_status": CacheStatus.HIT}
        )

    async def _populate(self, url: str, key: str, config: CacheConfiguration) -> CacheRecord:
        """Fetch ``url`` and write it under ``key``. Non-200 results are not written."""
        response = await self._fetcher.fetch(url, use_proxy=config.google_cache)
        if not response.ok:
            return CacheRecord(
                url=url,
                hash_key=key,
                compressed=config.compressed,
                error=True,
                status_code=response.status_code,
                status_message=response.status_message,
            )

        record = CacheRecord(
            url=url,
            hash_key=key,
            compressed=config.compressed,
            timestamp=datetime.now(UTC),
            data=response.body,
        )
        await self._store.write(key, codec.encode(record, config.compressed), config)
        return record.model_copy(update={"cache_status": CacheStatus.MISS})

    # ------------------------------------------------------------------
    # Blocking variants (no running event loop required)
    # ------------------------------------------------------------------

    def is_cached_sync(self, url: str) -> bool:
        return asyncio.run(self.is_cached(url))

    def get_sync(self, url: str) -> CacheRecord:
        return asyncio.run(self.get(url))

    def delete_sync(self, urls: str | Iterable[str]) -> None:
        asyncio.run(self.delete(urls))

    def flush_sync(self) -> FlushResult:
        return asyncio.run(self.flush())


@asynccontextmanager
async def open_cache(settings: Settings | None = None) -> AsyncGenerator[CacheService, None]:
    """Build a CacheService with its own HTTP client; the client is closed on exit."""
    if settings is None:
        settings = Settings()
    http_client = build_http_client(settings.fetcher)
    try:
        yield CacheService(settings.cache, Fetcher(http_client, settings.fetcher))
    finally:
        await http_client.aclose()
