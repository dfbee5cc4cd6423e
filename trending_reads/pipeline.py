from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Protocol, Sequence

import aiohttp

from trending_reads.config import Config, SourceRegistry, load_config, load_sources
from trending_reads.hackernews import HackerNewsFetcher
from trending_reads.http import HttpClient, build_client
from trending_reads.merge import DEFAULT_MIN_TITLE_LENGTH, merge_articles
from trending_reads.reddit import RedditFetcher
from trending_reads.rss import RssFetcher, build_strategies
from trending_reads.storage import Snapshot, build_snapshot, write_snapshot
from trending_reads.types import Article, SourceResult

logger = logging.getLogger(__name__)


class SourceFetcher(Protocol):
    kind: str

    async def fetch(self, category: str) -> list[SourceResult]:  # pragma: no cover - interface
        ...


@dataclass
class CategoryResult:
    category: str
    articles: list[Article] = field(default_factory=list)
    sources: list[SourceResult] = field(default_factory=list)

    @property
    def failed_sources(self) -> list[SourceResult]:
        return [s for s in self.sources if not s.ok]

    @property
    def failed(self) -> bool:
        """True only when there were sources and every one of them failed."""
        return bool(self.sources) and all(not s.ok for s in self.sources)


class Aggregator:
    """Runs every fetcher for a category concurrently and merges the results."""

    def __init__(self, fetchers: Sequence[SourceFetcher], min_title_length: int = DEFAULT_MIN_TITLE_LENGTH) -> None:
        self._fetchers = list(fetchers)
        self._min_title_length = min_title_length

    async def fetch_category(self, category: str) -> CategoryResult:
        outcomes = await asyncio.gather(
            *(f.fetch(category) for f in self._fetchers),
            return_exceptions=True,
        )

        sources: list[SourceResult] = []
        for fetcher, outcome in zip(self._fetchers, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error("%s fetcher crashed for %s: %r", fetcher.kind, category, outcome)
                sources.append(SourceResult.failure(fetcher.kind, repr(outcome)))
                continue
            sources.extend(outcome)

        raw = [a for s in sources for a in s.articles]
        merged = merge_articles(raw, min_title_length=self._min_title_length)
        result = CategoryResult(category=category, articles=merged, sources=sources)

        logger.info(
            "%s: %d articles (%d raw) from %d sources, %d failed",
            category, len(merged), len(raw), len(sources), len(result.failed_sources),
        )
        return result

    async def fetch_all(self, categories: Sequence[str]) -> dict[str, CategoryResult]:
        results = await asyncio.gather(*(self.fetch_category(c) for c in categories))
        return {r.category: r for r in results}


def build_fetchers(client: HttpClient, cfg: Config, registry: SourceRegistry) -> list[SourceFetcher]:
    hn = cfg.hackernews
    fetchers: list[SourceFetcher] = []
    if hn["enabled"]:
        fetchers.append(
            HackerNewsFetcher(
                client,
                registry,
                endpoint=hn["endpoint"],
                hits_per_page=hn["hits_per_page"],
                min_points=hn["min_points"],
                comment_weight=hn["comment_weight"],
            )
        )
    if cfg.reddit_enabled:
        fetchers.append(RedditFetcher(client, registry, comment_weight=hn["comment_weight"]))
    fetchers.append(
        RssFetcher(
            client,
            registry,
            strategies=build_strategies(cfg),
            max_items_per_feed=cfg.max_items_per_feed,
            source_timeout_seconds=cfg.source_timeout_seconds,
        )
    )
    return fetchers


@asynccontextmanager
async def open_aggregator(cfg: Config, registry: SourceRegistry) -> AsyncIterator[Aggregator]:
    connector = aiohttp.TCPConnector(limit=cfg.max_connections)
    async with aiohttp.ClientSession(connector=connector) as session:
        client = build_client(session, cfg)
        yield Aggregator(build_fetchers(client, cfg, registry), min_title_length=cfg.min_title_length)


async def run_pipeline(
    config_path: str | Path | None = None,
    sources_path: str | Path | None = None,
    *,
    categories: Sequence[str] | None = None,
    out_path: str | Path | None = None,
    persist: bool = True,
) -> tuple[Snapshot, dict[str, CategoryResult]]:
    """Fetch every category once and (optionally) write the snapshot document."""

    cfg = load_config(config_path)
    registry = load_sources(sources_path)

    active = list(categories or registry.categories)
    unknown = [c for c in active if c not in registry.categories]
    if unknown:
        raise ValueError(f"unknown categories: {', '.join(unknown)}")

    async with open_aggregator(cfg, registry) as aggregator:
        results = await aggregator.fetch_all(active)

    snapshot = build_snapshot({cat: results[cat].articles for cat in active})

    if persist:
        path = Path(out_path) if out_path else cfg.snapshot_path
        write_snapshot(path, snapshot)
        logger.info("snapshot written to %s", path)

    for cat in active:
        r = results[cat]
        names = sorted({a.source for a in r.articles})
        logger.info("  %s: %d articles from [%s]", cat, len(r.articles), ", ".join(names))
        if r.failed:
            logger.error("  %s: every source failed", cat)

    return snapshot, results
