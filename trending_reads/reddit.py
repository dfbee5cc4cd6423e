from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from trending_reads.config import SourceRegistry
from trending_reads.dates import from_epoch, utc_now
from trending_reads.exceptions import FeedParseError, FetchError
from trending_reads.extract import is_http_url, strip_html, truncate
from trending_reads.http import HttpClient
from trending_reads.scoring import compute_engagement_score
from trending_reads.types import Article, FeedSource, SourceResult

logger = logging.getLogger(__name__)

DESCRIPTION_CHARS = 200


def listing_posts(payload: Any) -> list[dict[str, Any]]:
    """Post objects from a Reddit listing (``data.children[].data``)."""

    children = None
    if isinstance(payload, dict):
        children = (payload.get("data") or {}).get("children")
    if not isinstance(children, list):
        raise FeedParseError("listing has no data.children array")
    return [c["data"] for c in children if isinstance(c, dict) and isinstance(c.get("data"), dict)]


def is_link_post(post: dict[str, Any]) -> bool:
    if post.get("is_self"):
        return False
    if not str(post.get("title") or "").strip():
        return False
    return bool(post.get("url"))


def post_to_article(
    post: dict[str, Any],
    source: FeedSource,
    comment_weight: float = 2.0,
    now: Optional[datetime] = None,
) -> Article:
    published_at = from_epoch(post.get("created_utc"))
    selftext = truncate(strip_html(post.get("selftext") or ""), DESCRIPTION_CHARS)
    thumbnail = str(post.get("thumbnail") or "")
    return Article(
        id=f"reddit-{post.get('id')}",
        title=strip_html(str(post["title"])),
        url=str(post["url"]).strip(),
        source=source.name,
        category=source.category,
        score=compute_engagement_score(
            post.get("score") or 0,
            post.get("num_comments") or 0,
            published_at,
            comment_weight=comment_weight,
            now=now,
        ),
        description=selftext or None,
        published_at=published_at,
        thumbnail=thumbnail if is_http_url(thumbnail) else None,
        kind="reddit",
    )


class RedditFetcher:
    """Ranked listing fetcher (``/r/<sub>/top.json``); self-posts are skipped."""

    kind = "reddit"

    def __init__(self, client: HttpClient, registry: SourceRegistry, comment_weight: float = 2.0) -> None:
        self._client = client
        self._registry = registry
        self._comment_weight = comment_weight

    def _to_articles(self, source: FeedSource, posts: list[dict[str, Any]]) -> list[Article]:
        now = utc_now()
        articles: list[Article] = []
        for p in posts:
            if not is_link_post(p):
                continue
            try:
                articles.append(post_to_article(p, source, self._comment_weight, now=now))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("[Reddit] %s: skipping malformed post %r: %s", source.name, p.get("id"), e)
        return articles

    async def fetch_source(self, source: FeedSource) -> SourceResult:
        try:
            payload = await self._client.get_json(source.url)
            posts = listing_posts(payload)
        except (FetchError, FeedParseError) as e:
            logger.warning("[Reddit] failed to fetch %s: %s", source.name, e)
            return SourceResult.failure(source.name, str(e))

        articles = self._to_articles(source, posts)
        logger.info("[Reddit] %s: %d link posts of %d", source.name, len(articles), len(posts))
        return SourceResult(source=source.name, articles=articles, strategy="listing")

    async def _isolated(self, source: FeedSource) -> SourceResult:
        try:
            return await self.fetch_source(source)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("[Reddit] %s: unexpected error", source.name)
            return SourceResult.failure(source.name, f"unexpected error: {e}")

    async def fetch(self, category: str) -> list[SourceResult]:
        sources = self._registry.sources_for(category, type="reddit")
        return list(await asyncio.gather(*(self._isolated(s) for s in sources)))
