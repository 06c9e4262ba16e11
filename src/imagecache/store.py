"""File-per-key persistence for cached records.

Every method takes the active ``CacheConfiguration`` explicitly; the store
keeps no configuration of its own. ``OSError``s are translated into
``imagecache.errors`` kinds here and never retried.
"""

from __future__ import annotations

import stat
import uuid
from contextlib import suppress
from typing import TYPE_CHECKING

import aiofiles
import aiofiles.os
import structlog

from imagecache.errors import NotAFileError, NotFoundError, StorageError

if TYPE_CHECKING:
    from pathlib import Path

    from imagecache.config import CacheConfiguration

log = structlog.get_logger()

_SI_UNITS = ("kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")


def format_size(num_bytes: int) -> str:
    """Render a byte count in SI units: ``512 B``, ``1.5 kB``, ``2.0 MB``."""
    if abs(num_bytes) < 1000:
        return f"{num_bytes} B"
    size = float(num_bytes)
    unit = -1
    while True:
        size /= 1000
        unit += 1
        if abs(size) < 1000 or unit == len(_SI_UNITS) - 1:
            break
    return f"{size:.1f} {_SI_UNITS[unit]}"


def key_path(key: str, config: CacheConfiguration) -> Path:
    return config.dir / f"{key}{config.extname}"


def matching_keys(entries: list[str], config: CacheConfiguration) -> list[str]:
    """Keys of the entries named <key><extname>; other entries are ignored."""
    ext = config.extname
    return [name[: -len(ext)] for name in entries if name.endswith(ext) and len(name) > len(ext)]


def _storage_error(action: str, path: Path | str, exc: OSError) -> StorageError:
    return StorageError(
        f"Failed to {action} {path}: {exc.strerror or exc}",
        suggestion="Check that the cache directory exists and is readable and writable.",
    )


class FileStore:
    """Async filesystem store implementing StoreProtocol."""

    async def exists(self, key: str, config: CacheConfiguration) -> bool:
        return bool(await aiofiles.os.path.exists(key_path(key, config)))

    async def read(self, key: str, config: CacheConfiguration) -> bytes:
        path = key_path(key, config)
        try:
            async with aiofiles.open(path, "rb") as f:
                data: bytes = await f.read()
                return data
        except FileNotFoundError as exc:
            raise NotFoundError(
                f"No cache entry {path.name} in {config.dir}",
                suggestion="Fetch the URL first to populate the cache.",
            ) from exc
        except OSError as exc:
            raise _storage_error("read", path, exc) from exc

    async def write(self, key: str, data: bytes, config: CacheConfiguration) -> None:
        """Create or replace the file for ``key``.

        Bytes go to a temporary file in the same directory which is then
        renamed over the target, so readers see either the old or the new
        file and never a partial one.
        """
        path = key_path(key, config)
        tmp_path = config.dir / f".{key}.{uuid.uuid4().hex}.tmp"
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_path, path)
        except OSError as exc:
            with suppress(OSError):
                await aiofiles.os.remove(tmp_path)
            raise _storage_error("write", path, exc) from exc
        log.debug("cache_write", key=key, bytes=len(data))

    async def delete(self, key: str, config: CacheConfiguration) -> None:
        path = key_path(key, config)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as exc:
            raise NotFoundError(
                f"No cache entry {path.name} in {config.dir}",
                suggestion="The URL is not cached; nothing to delete.",
            ) from exc
        except OSError as exc:
            raise _storage_error("delete", path, exc) from exc

    async def list_entries(self, config: CacheConfiguration) -> list[str]:
        """Return every entry name in the cache directory, matching or not."""
        try:
            entries: list[str] = await aiofiles.os.listdir(config.dir)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise _storage_error("list", config.dir, exc) from exc
        return entries

    async def list_all(self, config: CacheConfiguration) -> list[str]:
        """Return the keys of all files carrying the configured extension."""
        return matching_keys(await self.list_entries(config), config)

    async def ensure_directory(self, config: CacheConfiguration) -> None:
        try:
            await aiofiles.os.makedirs(config.dir, exist_ok=True)
        except OSError as exc:
            raise _storage_error("create", config.dir, exc) from exc

    async def size_of(self, key: str, config: CacheConfiguration) -> int:
        path = key_path(key, config)
        try:
            st = await aiofiles.os.stat(path)
        except FileNotFoundError as exc:
            raise NotFoundError(f"No cache entry {path.name} in {config.dir}") from exc
        except OSError as exc:
            raise _storage_error("stat", path, exc) from exc
        if not stat.S_ISREG(st.st_mode):
            raise NotAFileError(
                f"{path.name} is not a file",
                suggestion="Remove the directory or special file shadowing this cache entry.",
            )
        return st.st_size
