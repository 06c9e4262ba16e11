"""End-to-end tests: CacheService + Fetcher + FileStore with mocked HTTP."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from imagecache.errors import TransportError
from imagecache.keys import derive_key
from imagecache.models.cache import CacheRecord, CacheStatus
from imagecache.service import open_cache

if TYPE_CHECKING:
    from imagecache.config import Settings

GOOD = "https://images.example.com/cat.jpg"
OTHER = "https://images.example.com/dog.png"
GONE = "https://images.example.com/gone.gif"
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF"
PNG_BYTES = b"\x89PNG\r\n\x1a\n"


def _mock_images(router: respx.MockRouter) -> None:
    router.get(GOOD).mock(
        return_value=httpx.Response(200, content=JPEG_BYTES, headers={"content-type": "image/jpeg"})
    )
    router.get(OTHER).mock(
        return_value=httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
    )
    router.get(GONE).mock(return_value=httpx.Response(404))


@pytest.mark.parametrize("compressed", [False, True])
async def test_fetch_then_serve_from_cache(settings: Settings, compressed: bool) -> None:
    with respx.mock(assert_all_called=False) as router:
        _mock_images(router)
        async with open_cache(settings) as cache:
            cache.configure(compressed=compressed)

            first = await cache.fetch_images([GOOD, OTHER, GONE])
            assert isinstance(first, list)
            assert [r.cache_status for r in first] == [CacheStatus.MISS, CacheStatus.MISS, None]
            assert first[2].error is True
            assert first[2].status_code == 404

            second = await cache.fetch_images([GOOD, OTHER])
            assert isinstance(second, list)
            assert [r.cache_status for r in second] == [CacheStatus.HIT, CacheStatus.HIT]

        assert router.calls.call_count == 3  # the second batch never hit the network

    hit = second[0]
    assert hit.url == GOOD
    assert hit.compressed is compressed
    assert hit.hash_key == derive_key(GOOD, compressed)
    assert hit.data is not None
    prefix = "data:image/jpeg;base64,"
    assert hit.data.startswith(prefix)
    assert base64.b64decode(hit.data[len(prefix) :]) == JPEG_BYTES

    files = sorted(p.name for p in settings.cache.dir.iterdir())
    assert files == sorted(
        f"{derive_key(url, compressed)}.cache" for url in (GOOD, OTHER)
    )


async def test_proxy_routing_keeps_original_url(settings: Settings) -> None:
    with respx.mock:
        route = respx.get(host="relay.test", path="/proxy", params={"url": GOOD}).mock(
            return_value=httpx.Response(
                200, content=JPEG_BYTES, headers={"content-type": "image/jpeg"}
            )
        )
        async with open_cache(settings) as cache:
            cache.configure(googleCache=True)
            record = await cache.fetch_images(GOOD)
            assert isinstance(record, CacheRecord)
            assert route.call_count == 1
            assert record.url == GOOD

            cached = await cache.get(GOOD)
            assert cached.url == GOOD
            assert cached.cache_status == CacheStatus.HIT


async def test_network_failure_is_hard(settings: Settings) -> None:
    with respx.mock(assert_all_called=False) as router:
        _mock_images(router)
        router.get("https://down.example.com/x.png").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )
        async with open_cache(settings) as cache:
            with pytest.raises(TransportError):
                await cache.fetch_images([GOOD, "https://down.example.com/x.png"])
            assert await cache.is_cached(GOOD) is True


async def test_set_get_delete_flush_cycle(settings: Settings) -> None:
    with respx.mock(assert_all_called=False) as router:
        _mock_images(router)
        async with open_cache(settings) as cache:
            stored = await cache.set([GOOD, OTHER])
            assert {r.url for r in stored} == {GOOD, OTHER}

            await cache.delete(GOOD)
            assert await cache.is_cached(GOOD) is False

            result = await cache.flush()
            assert result.deleted == 1
            assert result.total_files == 1
            assert await cache.is_cached(OTHER) is False
