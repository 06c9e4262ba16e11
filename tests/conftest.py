"""Shared test fixtures for the imagecache test suite."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from imagecache.config import CacheConfiguration
from imagecache.errors import TransportError
from imagecache.models.cache import FetchResponse
from imagecache.service import CacheService
from imagecache.store import FileStore

if TYPE_CHECKING:
    from pathlib import Path

PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgo="


class FakeFetcher:
    """In-memory FetcherProtocol implementation.

    URLs not registered via ``responses`` or ``errors`` answer 200 with a
    fixed PNG body. Every call is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.responses: dict[str, FetchResponse] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, bool]] = []
        self.gate: asyncio.Event | None = None  # When set, fetches wait on it

    def fail_with_status(self, url: str, status_code: int, status_message: str) -> None:
        self.responses[url] = FetchResponse(status_code=status_code, status_message=status_message)

    async def fetch(self, url: str, *, use_proxy: bool = False) -> FetchResponse:
        self.calls.append((url, use_proxy))
        if self.gate is not None:
            await self.gate.wait()
        if url in self.errors:
            raise self.errors[url]
        if url in self.responses:
            return self.responses[url]
        return FetchResponse(status_code=200, status_message="OK", body=PNG_DATA_URI)

    def fetched_urls(self) -> list[str]:
        return [url for url, _ in self.calls]


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture()
def config(cache_dir: Path) -> CacheConfiguration:
    return CacheConfiguration(dir=cache_dir)


@pytest.fixture()
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def service(config: CacheConfiguration, fetcher: FakeFetcher) -> CacheService:
    return CacheService(config, fetcher, FileStore())


@pytest.fixture()
def transport_error() -> TransportError:
    return TransportError("Network error fetching https://down.example.com/x.png: refused")
