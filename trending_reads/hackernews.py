from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from trending_reads.config import SourceRegistry
from trending_reads.dates import parse_dt, utc_now
from trending_reads.exceptions import FeedParseError, FetchError
from trending_reads.extract import strip_html, truncate
from trending_reads.http import HttpClient
from trending_reads.scoring import compute_engagement_score
from trending_reads.types import Article, SourceResult

logger = logging.getLogger(__name__)

SOURCE_NAME = "Hacker News"
ITEM_URL = "https://news.ycombinator.com/item?id={id}"
DESCRIPTION_CHARS = 200


def hit_to_article(hit: dict[str, Any], category: str, comment_weight: float, now: Optional[datetime] = None) -> Article:
    object_id = str(hit["objectID"])
    published_at = parse_dt(hit.get("created_at"))
    story_text = truncate(strip_html(hit.get("story_text") or ""), DESCRIPTION_CHARS)
    return Article(
        id=f"hn-{object_id}",
        title=strip_html(str(hit.get("title") or "")),
        url=str(hit.get("url") or "") or ITEM_URL.format(id=object_id),
        source=SOURCE_NAME,
        category=category,
        score=compute_engagement_score(
            hit.get("points") or 0,
            hit.get("num_comments") or 0,
            published_at,
            comment_weight=comment_weight,
            now=now,
        ),
        description=story_text or None,
        published_at=published_at,
        kind="hackernews",
    )


class HackerNewsFetcher:
    """Search-term fan-out over the Algolia HN API.

    The backend has no OR across terms, so one query is issued per term and
    hits are deduplicated by objectID before scoring.
    """

    kind = "hackernews"

    def __init__(
        self,
        client: HttpClient,
        registry: SourceRegistry,
        endpoint: str,
        hits_per_page: int = 15,
        min_points: int = 10,
        comment_weight: float = 2.0,
    ) -> None:
        self._client = client
        self._registry = registry
        self._endpoint = endpoint
        self._hits_per_page = hits_per_page
        self._min_points = min_points
        self._comment_weight = comment_weight

    async def search(self, term: str) -> list[dict[str, Any]]:
        params = {
            "query": term,
            "tags": "story",
            "hitsPerPage": str(self._hits_per_page),
            "numericFilters": f"points>{self._min_points}",
        }
        data = await self._client.get_json(self._endpoint, params=params)
        hits = data.get("hits") if isinstance(data, dict) else None
        if not isinstance(hits, list):
            raise FeedParseError("search response has no hits array")
        return [h for h in hits if isinstance(h, dict) and h.get("objectID") is not None]

    async def _search_isolated(self, term: str) -> list[dict[str, Any]] | str:
        try:
            return await self.search(term)
        except asyncio.CancelledError:
            raise
        except (FetchError, FeedParseError) as e:
            logger.warning("[HN] term=%r failed: %s", term, e)
            return str(e)
        except Exception as e:
            logger.exception("[HN] term=%r: unexpected error", term)
            return f"unexpected error: {e}"

    async def fetch(self, category: str) -> list[SourceResult]:
        terms = self._registry.terms_for(category)
        if not terms:
            return []

        outcomes = await asyncio.gather(*(self._search_isolated(t) for t in terms))
        now = utc_now()

        seen: set[str] = set()
        results: list[SourceResult] = []
        for term, outcome in zip(terms, outcomes):
            label = f"{SOURCE_NAME} ({term})"
            if isinstance(outcome, str):
                results.append(SourceResult.failure(label, outcome))
                continue

            articles: list[Article] = []
            for hit in outcome:
                object_id = str(hit["objectID"])
                if object_id in seen:
                    continue
                seen.add(object_id)
                if not str(hit.get("title") or "").strip():
                    continue
                try:
                    articles.append(hit_to_article(hit, category, self._comment_weight, now=now))
                except (AttributeError, TypeError, ValueError) as e:
                    logger.warning("[HN] skipping malformed hit %s: %s", object_id, e)
            results.append(SourceResult(source=label, articles=articles, strategy="search"))

        total = sum(len(r.articles) for r in results)
        logger.info("[HN] %s: %d unique stories from %d terms", category, total, len(terms))
        return results
