"""Command-line administration of the subscription cache.

    subcache-admin insert <url> <file>   seed an entry from a file
    subcache-admin fix <url> <file>      delete and re-insert an entry
    subcache-admin delete <url>          remove the entry for a URL
    subcache-admin list [--limit N]      most recent entries first
    subcache-admin stats                 aggregate counters
    subcache-admin key <url>             print the cache key for a URL

Operates directly on the configured SQLite database and prints JSON to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import aiosqlite
import structlog

from subcache.cache import SubscriptionCache
from subcache.config import Settings
from subcache.keys import derive_key
from subcache.logs import setup_logging

log = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="subcache-admin", description="Subscription cache admin")
    parser.add_argument("--db", help="SQLite database path (defaults to configured cache.db_path)")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("insert", "Insert content for a URL"),
        ("fix", "Delete and re-insert content for a URL"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("url")
        cmd.add_argument("content_file", type=Path)

    delete = sub.add_parser("delete", help="Delete the entry for a URL")
    delete.add_argument("url")

    listing = sub.add_parser("list", help="List cached entries, newest first")
    listing.add_argument("--limit", type=int, default=100)

    sub.add_parser("stats", help="Show aggregate cache statistics")

    key = sub.add_parser("key", help="Print the cache key for a URL")
    key.add_argument("url")

    return parser


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def run_command(args: argparse.Namespace, cache: SubscriptionCache) -> int:
    """Execute one parsed command against ``cache``. Returns the process exit code."""
    if args.command in ("insert", "fix"):
        if not args.content_file.is_file():
            log.error("content_file_not_found", path=str(args.content_file))
            return 1
        content = args.content_file.read_text(encoding="utf-8")
        operation = cache.insert if args.command == "insert" else cache.fix
        ok = await operation(args.url, content)
        _emit({"success": ok, "key": derive_key(args.url), "content_length": len(content)})
        return 0 if ok else 1

    if args.command == "delete":
        key = derive_key(args.url)
        ok = await cache.clear(key)
        _emit({"success": ok, "key": key})
        return 0 if ok else 1

    if args.command == "list":
        entries = await cache.list_entries(limit=args.limit)
        _emit([entry.model_dump() for entry in entries])
        return 0

    if args.command == "stats":
        stats = await cache.stats()
        _emit(stats.model_dump())
        return 0

    # key
    _emit({"url": args.url, "key": derive_key(args.url)})
    return 0


async def _main_async(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "key":
        return await run_command(args, SubscriptionCache(None))

    db_path = Path(args.db or settings.cache.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(str(db_path)) as db:
        cache = SubscriptionCache(db)
        if not await cache.ensure_schema():
            return 1
        return await run_command(args, cache)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = Settings()
    setup_logging(settings)
    sys.exit(asyncio.run(_main_async(args, settings)))


if __name__ == "__main__":
    main()
