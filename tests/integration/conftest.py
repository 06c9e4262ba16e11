"""Integration test fixtures.

Provides Settings pointing at an isolated tmp cache directory. HTTP is
mocked with respx inside each test, so the real Fetcher and httpx client
are exercised end to end.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from imagecache.config import CacheConfiguration, FetcherSettings, Settings

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        cache=CacheConfiguration(dir=tmp_path / "images"),
        fetcher=FetcherSettings(proxy_endpoint="https://relay.test/proxy?url="),
    )
