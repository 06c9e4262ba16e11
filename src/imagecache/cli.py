"""Command line entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build the CacheService from Settings plus command line overrides
- Dispatch one subcommand and print its result as JSON on stdout
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

from imagecache import __version__
from imagecache.config import Settings
from imagecache.errors import ImageCacheError
from imagecache.service import open_cache

if TYPE_CHECKING:
    from collections.abc import Sequence

    from imagecache.models.cache import CacheRecord
    from imagecache.service import CacheService

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr: stdout is reserved for command output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagecache",
        description="Fetch images by URL through a local on-disk cache.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--dir", help="cache directory")
    parser.add_argument("--extname", help="cache file extension (default .cache)")
    parser.add_argument(
        "--compressed",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="store records zlib-compressed",
    )
    parser.add_argument(
        "--proxy",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="fetch through the image relay proxy",
    )
    parser.add_argument(
        "--include-data",
        action="store_true",
        help="include the base64 image body in printed records",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    fetch = sub.add_parser("fetch", help="serve URLs from cache, fetching the missing ones")
    fetch.add_argument("urls", nargs="+")
    get = sub.add_parser("get", help="print a cached record")
    get.add_argument("url")
    status = sub.add_parser("status", help="report whether URLs are cached")
    status.add_argument("urls", nargs="+")
    delete = sub.add_parser("delete", help="delete cached URLs")
    delete.add_argument("urls", nargs="+")
    sub.add_parser("keys", help="list the keys of every cached file")
    sub.add_parser("flush", help="delete every cache file in the directory")
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if args.dir is not None:
        options["dir"] = args.dir
    if args.extname is not None:
        options["extname"] = args.extname
    if args.compressed is not None:
        options["compressed"] = args.compressed
    if args.proxy is not None:
        options["googleCache"] = args.proxy
    return options


def _dump_record(record: CacheRecord, include_data: bool) -> dict:
    exclude = None if include_data else {"data"}
    return record.model_dump(mode="json", exclude=exclude, exclude_none=True)


async def _run(args: argparse.Namespace, service: CacheService) -> Any:
    if args.command == "fetch":
        result = await service.fetch_images(args.urls)
        records = result if isinstance(result, list) else [result]
        dumped = [_dump_record(record, args.include_data) for record in records]
        return dumped if isinstance(result, list) else dumped[0]
    if args.command == "get":
        return _dump_record(await service.get(args.url), args.include_data)
    if args.command == "status":
        return {url: await service.is_cached(url) for url in args.urls}
    if args.command == "delete":
        await service.delete(args.urls)
        return {"deleted": len(set(args.urls))}
    if args.command == "keys":
        return sorted(await service.keys())
    if args.command == "flush":
        return (await service.flush()).model_dump(mode="json")
    raise AssertionError(f"unhandled command {args.command!r}")


async def _main(args: argparse.Namespace, settings: Settings) -> Any:
    async with open_cache(settings) as service:
        service.configure(**_overrides(args))
        return await _run(args, service)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    _setup_logging(settings)

    try:
        output = asyncio.run(_main(args, settings))
    except ImageCacheError as exc:
        log.warning("command_error", command=args.command, code=exc.code, message=exc.message)
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
