"""Command line entry point: build the snapshot, browse it, or fetch live."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from trending_reads.cache import JsonFileStore, TtlCache
from trending_reads.config import load_config, load_sources
from trending_reads.dates import to_iso
from trending_reads.exceptions import CategoryUnavailableError, SnapshotUnavailableError
from trending_reads.pipeline import open_aggregator, run_pipeline
from trending_reads.service import ArticleService, SnapshotReader
from trending_reads.storage import snapshot_to_frame, write_frame
from trending_reads.types import Article

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trending-reads", description=__doc__)
    parser.add_argument("--config", type=Path, default=None, help="runtime config YAML")
    parser.add_argument("--sources", type=Path, default=None, help="categories/sources YAML")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    snap = sub.add_parser("snapshot", help="fetch every category and write the snapshot document")
    snap.add_argument("--out", type=Path, default=None, help="snapshot path (default from config)")
    snap.add_argument("--category", action="append", default=None, help="limit to a category (repeatable)")
    snap.add_argument("--export", type=Path, default=None, help="also export a .csv or .parquet table")

    show = sub.add_parser("show", help="print a category from the snapshot document")
    show.add_argument("category")
    show.add_argument("--snapshot", type=Path, default=None)
    show.add_argument("--search", default="")
    show.add_argument("--limit", type=int, default=20)

    fetch = sub.add_parser("fetch", help="fetch a category live through the TTL cache")
    fetch.add_argument("category")
    fetch.add_argument("--search", default="")
    fetch.add_argument("--limit", type=int, default=20)
    fetch.add_argument("--force", action="store_true", help="ignore fresh cache entries")

    return parser


def print_articles(articles: Sequence[Article], limit: int) -> None:
    for a in articles[: limit if limit > 0 else None]:
        when = to_iso(a.published_at) or "undated"
        print(f"{a.score:>5.0f}  {a.source:<24.24}  {when}")
        print(f"       {a.title}")
        print(f"       {a.url}")
    if not articles:
        print("No articles found.")


def cmd_snapshot(args: argparse.Namespace) -> int:
    snapshot, results = asyncio.run(
        run_pipeline(args.config, args.sources, categories=args.category, out_path=args.out)
    )
    if args.export:
        write_frame(args.export, snapshot_to_frame(snapshot))
        logger.info("exported table to %s", args.export)

    failed = [cat for cat, r in results.items() if r.failed]
    if failed:
        print(f"Every source failed for: {', '.join(failed)}")
        return 1
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    path = args.snapshot or load_config(args.config).snapshot_path
    reader = SnapshotReader(path)
    try:
        snapshot = reader.load()
    except SnapshotUnavailableError as e:
        print(f"Failed to load articles: {e}")
        return 1
    if args.category not in snapshot.categories:
        print(f"Unknown category '{args.category}'. Available: {', '.join(snapshot.categories)}")
        return 1
    print(f"Generated at {to_iso(snapshot.generated_at)}")
    print_articles(reader.articles(args.category, args.search), args.limit)
    return 0


async def _fetch(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    registry = load_sources(args.sources)
    if args.category not in registry.categories:
        print(f"Unknown category '{args.category}'. Available: {', '.join(registry.categories)}")
        return 1

    cache = TtlCache(
        JsonFileStore(cfg.cache_path),
        ttl_seconds=cfg.cache_ttl_seconds,
        namespace=cfg.cache_namespace,
        version=cfg.cache_version,
    )
    async with open_aggregator(cfg, registry) as aggregator:
        service = ArticleService(aggregator, cache)
        try:
            if args.force:
                try:
                    await service.refresh(args.category)
                except CategoryUnavailableError as e:
                    print(e)
                    return 1
            state = await service.load(args.category, args.search)
            # let a stale-while-revalidate refresh land before the session closes
            await service.drain()
        finally:
            await service.aclose()

    if state is None:
        return 1
    if state.error:
        print(state.error)
        return 1
    print_articles(state.articles, args.limit)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "snapshot":
        return cmd_snapshot(args)
    if args.command == "show":
        return cmd_show(args)
    if args.command == "fetch":
        return asyncio.run(_fetch(args))
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
