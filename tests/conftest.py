from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from trending_reads.config import SourceRegistry
from trending_reads.exceptions import FetchError
from trending_reads.types import Article

DATA_DIR = Path(__file__).parent / "data"
NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class FakeHttpClient:
    """Stands in for HttpClient; routes are keyed by URL.

    A route value may be a string (body), a dict/list (JSON body), an exception
    instance (raised), or a callable taking the query params and returning one
    of those.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, dict[str, str] | None]] = []

    async def get_text(self, url: str, params=None, accept: str = "") -> str:
        self.calls.append((url, dict(params) if params else None))
        if url not in self.routes:
            raise FetchError(url, "HTTP 404")
        resp = self.routes[url]
        if callable(resp) and not isinstance(resp, BaseException):
            resp = resp(params or {})
        if isinstance(resp, BaseException):
            raise resp
        if isinstance(resp, (dict, list)):
            return json.dumps(resp)
        return resp

    async def get_json(self, url: str, params=None) -> Any:
        text = await self.get_text(url, params=params)
        try:
            return json.loads(text)
        except ValueError as e:
            raise FetchError(url, f"invalid JSON: {e}") from e


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def fake_client_factory() -> Callable[..., FakeHttpClient]:
    return FakeHttpClient


@pytest.fixture
def load_fixture() -> Callable[[str], str]:
    def _load(name: str) -> str:
        return (DATA_DIR / name).read_text(encoding="utf-8")

    return _load


@pytest.fixture
def registry() -> SourceRegistry:
    return SourceRegistry.from_dict(
        {
            "categories": ["philosophy", "technology"],
            "labels": {"philosophy": "Philosophy"},
            "search_terms": {"technology": ["programming", "AI"]},
            "sources": [
                {"name": "Aeon", "url": "https://aeon.example/feed.rss", "category": "philosophy"},
                {"name": "Daily Nous", "url": "https://nous.example/feed/", "category": "philosophy"},
                {"name": "r/programming", "url": "https://www.reddit.com/r/programming/top/.rss", "category": "technology"},
                {
                    "name": "r/technology",
                    "url": "https://www.reddit.com/r/technology/top.json",
                    "category": "technology",
                    "type": "reddit",
                },
            ],
        }
    )


def make_article(
    id: str,
    url: str,
    score: float = 10.0,
    kind: str = "rss",
    title: str | None = None,
    published_at: datetime | None = None,
    source: str = "Test Source",
    description: str | None = None,
) -> Article:
    return Article(
        id=id,
        title=title if title is not None else f"Article {id} title",
        url=url,
        source=source,
        category="technology",
        score=score,
        description=description,
        published_at=published_at,
        kind=kind,
    )


@pytest.fixture
def article_factory() -> Callable[..., Article]:
    return make_article
