from __future__ import annotations

import math
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable

from trending_reads.extract import is_http_url
from trending_reads.types import Article

DEFAULT_MIN_TITLE_LENGTH = 5
UNIFORM_SCORE = 50

_SCHEME_WWW_RE = re.compile(r"^[a-z][a-z0-9+.-]*://(www\.)?", re.IGNORECASE)
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def canonical_url(url: str) -> str:
    """Dedup key for a URL: no scheme, no ``www.``, no trailing slash, lowercase.

    Used for comparison only, never for navigation.
    """

    key = _SCHEME_WWW_RE.sub("", url.strip())
    return key.rstrip("/").lower()


def filter_valid(articles: Iterable[Article], min_title_length: int = DEFAULT_MIN_TITLE_LENGTH) -> list[Article]:
    return [
        a for a in articles
        if len((a.title or "").strip()) >= min_title_length and is_http_url(a.url)
    ]


def _outranks(a: Article, b: Article) -> bool:
    if a.score != b.score:
        return a.score > b.score
    a_date, b_date = a.published_at or _OLDEST, b.published_at or _OLDEST
    if a_date != b_date:
        return a_date > b_date
    return a.id < b.id


def deduplicate(articles: Iterable[Article]) -> list[Article]:
    """Keep one article per canonical URL, the one with the higher raw score.

    Equal scores go to the newer article, then to the lower id, so the winner
    does not depend on input order. Output keeps first-seen key order.
    """

    kept: dict[str, Article] = {}
    for a in articles:
        key = canonical_url(a.url)
        existing = kept.get(key)
        if existing is None or _outranks(a, existing):
            kept[key] = a
    return list(kept.values())


def _normalize_group(group: list[Article]) -> list[Article]:
    max_score = max(a.score for a in group)
    if max_score <= 0:
        return [replace(a, score=UNIFORM_SCORE) for a in group]
    return [
        replace(a, score=min(100, max(0, math.floor(a.score / max_score * 100 + 0.5))))
        for a in group
    ]


def normalize_scores(articles: Iterable[Article]) -> list[Article]:
    """Rescale scores to 0-100 independently within each article kind.

    Feed heuristics and engagement-based scores live on different scales, so
    each kind is scaled against its own maximum and the groups are concatenated.
    """

    groups: dict[str, list[Article]] = {}
    for a in articles:
        groups.setdefault(a.kind, []).append(a)

    out: list[Article] = []
    for group in groups.values():
        out.extend(_normalize_group(group))
    return out


def sort_articles(articles: Iterable[Article]) -> list[Article]:
    """Descending score, then newest first (undated last), then id."""

    by_id = sorted(articles, key=lambda a: a.id)
    return sorted(
        by_id,
        key=lambda a: (a.score, a.published_at or _OLDEST),
        reverse=True,
    )


def merge_articles(articles: Iterable[Article], min_title_length: int = DEFAULT_MIN_TITLE_LENGTH) -> list[Article]:
    valid = filter_valid(articles, min_title_length=min_title_length)
    unique = deduplicate(valid)
    normalized = normalize_scores(unique)
    return sort_articles(normalized)


def filter_by_search(articles: Iterable[Article], query: str | None) -> list[Article]:
    articles = list(articles)
    if not query or not query.strip():
        return articles
    q = query.strip().lower()
    return [
        a for a in articles
        if q in a.title.lower()
        or q in a.source.lower()
        or (a.description is not None and q in a.description.lower())
    ]
