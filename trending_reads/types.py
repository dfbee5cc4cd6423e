from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from trending_reads.dates import parse_dt, to_iso

SOURCE_TYPES = ("rss", "reddit", "hackernews")


@dataclass(frozen=True)
class FeedSource:
    name: str
    url: str
    category: str
    type: str = "rss"


@dataclass(frozen=True)
class FeedItem:
    """Raw item as extracted from a feed, before any normalization."""

    title: str
    link: str
    description: str = ""
    pub_date: str = ""
    thumbnail: str = ""


@dataclass(frozen=True)
class Article:
    id: str
    title: str
    url: str
    source: str
    category: str
    score: float
    description: Optional[str] = None
    published_at: Optional[datetime] = None
    thumbnail: Optional[str] = None

    # normalization group (fetch type of origin)
    kind: str = "rss"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "category": self.category,
            "score": self.score,
            "kind": self.kind,
        }
        if self.description:
            d["description"] = self.description
        if self.published_at is not None:
            d["publishedAt"] = to_iso(self.published_at)
        if self.thumbnail:
            d["thumbnail"] = self.thumbnail
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Article":
        return cls(
            id=str(d["id"]),
            title=str(d["title"]),
            url=str(d["url"]),
            source=str(d.get("source") or ""),
            category=str(d.get("category") or ""),
            score=float(d.get("score") or 0.0),
            description=d.get("description") or None,
            published_at=parse_dt(d.get("publishedAt")),
            thumbnail=d.get("thumbnail") or None,
            kind=str(d.get("kind") or "rss"),
        )


@dataclass
class SourceResult:
    """Outcome of fetching one source (feed, search term or listing)."""

    source: str
    articles: list[Article] = field(default_factory=list)
    error: Optional[str] = None
    strategy: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, source: str, error: str) -> "SourceResult":
        return cls(source=source, error=error)
