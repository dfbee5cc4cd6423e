from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import datetime
from typing import Optional, Sequence
from urllib.parse import quote

from trending_reads.config import Config, SourceRegistry
from trending_reads.dates import parse_dt, utc_now
from trending_reads.exceptions import FeedParseError, FetchError
from trending_reads.extract import extract_external_link, is_reddit_source, strip_html, truncate
from trending_reads.feed_parser import parse_feed
from trending_reads.http import HttpClient
from trending_reads.merge import canonical_url
from trending_reads.scoring import compute_score
from trending_reads.types import Article, FeedItem, FeedSource, SourceResult

logger = logging.getLogger(__name__)

DESCRIPTION_CHARS = 250


class FeedStrategy:
    """One way of turning a feed URL into items."""

    name = "base"

    async def fetch_items(self, client: HttpClient, feed_url: str) -> list[FeedItem]:  # pragma: no cover - interface
        raise NotImplementedError


class DirectStrategy(FeedStrategy):
    name = "direct"

    async def fetch_items(self, client: HttpClient, feed_url: str) -> list[FeedItem]:
        return parse_feed(await client.get_text(feed_url))


class ProxyStrategy(FeedStrategy):
    """Fetch raw XML through a pass-through proxy (``{url}`` in the template)."""

    name = "proxy"

    def __init__(self, template: str) -> None:
        self._template = template

    async def fetch_items(self, client: HttpClient, feed_url: str) -> list[FeedItem]:
        proxied = self._template.format(url=quote(feed_url, safe=""))
        return parse_feed(await client.get_text(proxied))


class Rss2JsonStrategy(FeedStrategy):
    """Fetch items already converted to JSON by an rss2json-style service."""

    name = "rss2json"

    def __init__(self, endpoint: str) -> None:
        self._endpoint = endpoint

    async def fetch_items(self, client: HttpClient, feed_url: str) -> list[FeedItem]:
        data = await client.get_json(self._endpoint, params={"rss_url": feed_url})
        if not isinstance(data, dict):
            raise FeedParseError("unexpected rss2json payload")
        if data.get("status") != "ok":
            raise FeedParseError(str(data.get("message") or data.get("status") or "rss2json error"))

        items: list[FeedItem] = []
        for i in data.get("items") or []:
            if not isinstance(i, dict):
                continue
            title = strip_html(str(i.get("title") or ""))
            link = str(i.get("link") or "").strip()
            if not title or not link:
                continue
            items.append(
                FeedItem(
                    title=title,
                    link=link,
                    description=str(i.get("description") or i.get("content") or ""),
                    pub_date=str(i.get("pubDate") or ""),
                    thumbnail=str(i.get("thumbnail") or ""),
                )
            )
        return items


def build_strategies(cfg: Config) -> list[FeedStrategy]:
    out: list[FeedStrategy] = []
    for name in cfg.feed_strategies:
        if name == "direct":
            out.append(DirectStrategy())
        elif name == "proxy":
            out.append(ProxyStrategy(cfg.proxy_template))
        elif name == "rss2json":
            out.append(Rss2JsonStrategy(cfg.rss2json_endpoint))
        else:
            raise ValueError(f"unknown feed strategy: {name}")
    return out


def article_id(prefix: str, source_name: str, index: int, url: str) -> str:
    digest = hashlib.sha1(canonical_url(url).encode("utf-8")).hexdigest()[:10]
    return f"{prefix}-{source_name}-{index}-{digest}"


def items_to_articles(
    source: FeedSource,
    items: Sequence[FeedItem],
    max_items: int,
    now: Optional[datetime] = None,
) -> list[Article]:
    now = now or utc_now()
    reddit = is_reddit_source(source.name, source.url)
    usable = [it for it in items if it.title.strip() and it.link.strip()][:max_items]

    articles: list[Article] = []
    for idx, it in enumerate(usable):
        desc = truncate(strip_html(it.description), DESCRIPTION_CHARS)
        url = it.link.strip()
        if reddit:
            # the item link is the discussion thread; the article is linked from the body
            url = extract_external_link(it.description) or url
        published_at = parse_dt(it.pub_date)
        articles.append(
            Article(
                id=article_id("rss", source.name, idx, url),
                title=strip_html(it.title),
                url=url,
                source=source.name,
                category=source.category,
                score=compute_score(published_at, idx, len(desc), now=now),
                description=desc or None,
                published_at=published_at,
                thumbnail=it.thumbnail or None,
                kind="rss",
            )
        )
    return articles


class RssFetcher:
    """Generic RSS/Atom fetcher; tries each strategy until one yields items."""

    kind = "rss"

    def __init__(
        self,
        client: HttpClient,
        registry: SourceRegistry,
        strategies: Sequence[FeedStrategy],
        max_items_per_feed: int = 10,
        source_timeout_seconds: float | None = 15.0,
    ) -> None:
        self._client = client
        self._registry = registry
        self._strategies = list(strategies)
        self._max_items = max_items_per_feed
        self._source_timeout = source_timeout_seconds

    async def fetch_source(self, source: FeedSource) -> SourceResult:
        errors: list[str] = []
        saw_empty_feed = False

        for strategy in self._strategies:
            try:
                items = await strategy.fetch_items(self._client, source.url)
            except asyncio.CancelledError:
                raise
            except (FetchError, FeedParseError) as e:
                errors.append(f"{strategy.name}: {e}")
                continue

            if items:
                articles = items_to_articles(source, items, self._max_items)
                logger.info("[RSS] %s: %d items via %s", source.name, len(items), strategy.name)
                return SourceResult(source=source.name, articles=articles, strategy=strategy.name)

            saw_empty_feed = True
            errors.append(f"{strategy.name}: 0 items parsed")

        if saw_empty_feed:
            logger.info("[RSS] %s: feed is empty (%s)", source.name, "; ".join(errors))
            return SourceResult(source=source.name)

        logger.warning("[RSS] %s: all strategies failed (%s)", source.name, "; ".join(errors))
        return SourceResult.failure(source.name, "; ".join(errors) or "no strategy configured")

    async def _isolated(self, source: FeedSource) -> SourceResult:
        try:
            return await asyncio.wait_for(self.fetch_source(source), self._source_timeout)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning("[RSS] %s: gave up after %.0fs", source.name, self._source_timeout)
            return SourceResult.failure(source.name, f"deadline of {self._source_timeout:g}s exceeded")
        except Exception as e:
            logger.exception("[RSS] %s: unexpected error", source.name)
            return SourceResult.failure(source.name, f"unexpected error: {e}")

    async def fetch(self, category: str) -> list[SourceResult]:
        sources = self._registry.sources_for(category, type="rss")
        logger.info("[RSS] fetching %d feeds for %s", len(sources), category)
        return list(await asyncio.gather(*(self._isolated(s) for s in sources)))
