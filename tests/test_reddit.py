"""Tests for trending_reads.reddit."""

import asyncio

import pytest

from trending_reads.config import SourceRegistry
from trending_reads.exceptions import FeedParseError
from trending_reads.pipeline import Aggregator
from trending_reads.reddit import RedditFetcher, is_link_post, listing_posts, post_to_article
from trending_reads.types import FeedSource

LISTING_URL = "https://www.reddit.com/r/technology/top.json"
SOURCE = FeedSource(name="r/technology", url=LISTING_URL, category="technology", type="reddit")

# 2026-10-17 09:00 UTC, three hours before the test clock
CREATED = 1792227600


def _post(post_id, **extra):
    post = {
        "id": post_id,
        "title": f"Link post {post_id}",
        "url": f"https://news.example/{post_id}",
        "score": 200,
        "num_comments": 25,
        "created_utc": CREATED,
        "is_self": False,
        "thumbnail": "https://thumbs.example/a.jpg",
    }
    post.update(extra)
    return post


def _listing(*posts):
    return {"kind": "Listing", "data": {"children": [{"kind": "t3", "data": p} for p in posts]}}


class TestListing:
    def test_posts_unwrapped(self) -> None:
        assert [p["id"] for p in listing_posts(_listing(_post("a"), _post("b")))] == ["a", "b"]

    @pytest.mark.parametrize("payload", [{}, {"data": {}}, [], {"data": {"children": "nope"}}])
    def test_malformed_listing_raises(self, payload) -> None:
        with pytest.raises(FeedParseError):
            listing_posts(payload)

    def test_link_post_filter(self) -> None:
        assert is_link_post(_post("a"))
        assert not is_link_post(_post("b", is_self=True))
        assert not is_link_post(_post("c", title="  "))
        assert not is_link_post(_post("d", url=""))


class TestPostToArticle:
    def test_maps_fields(self, now) -> None:
        article = post_to_article(_post("xyz"), SOURCE, comment_weight=2, now=now)

        assert article.id == "reddit-xyz"
        assert article.url == "https://news.example/xyz"
        assert article.source == "r/technology"
        assert article.kind == "reddit"
        assert article.thumbnail == "https://thumbs.example/a.jpg"
        assert article.published_at.isoformat() == "2026-10-17T09:00:00+00:00"
        # three hours old: (200 + 25 * 2) * 3.0
        assert article.score == 750

    def test_non_numeric_timestamp_is_undated(self, now) -> None:
        article = post_to_article(_post("u", created_utc={"when": "yesterday"}), SOURCE, now=now)
        assert article.published_at is None

    def test_placeholder_thumbnail_dropped(self, now) -> None:
        article = post_to_article(_post("t", thumbnail="default"), SOURCE, now=now)
        assert article.thumbnail is None


class TestRedditFetcher:
    def test_skips_self_posts(self, fake_client_factory, registry) -> None:
        client = fake_client_factory(
            {LISTING_URL: _listing(_post("a"), _post("b", is_self=True), _post("c"))}
        )
        results = asyncio.run(RedditFetcher(client, registry).fetch("technology"))

        assert len(results) == 1
        assert results[0].source == "r/technology"
        assert results[0].strategy == "listing"
        assert [a.id for a in results[0].articles] == ["reddit-a", "reddit-c"]

    def test_malformed_payload_is_a_failure(self, fake_client_factory, registry) -> None:
        client = fake_client_factory({LISTING_URL: {"error": 429, "message": "Too Many Requests"}})
        result = asyncio.run(RedditFetcher(client, registry).fetch_source(SOURCE))

        assert not result.ok
        assert "data.children" in result.error

    def test_http_error_is_a_failure(self, fake_client_factory, registry) -> None:
        result = asyncio.run(RedditFetcher(fake_client_factory(), registry).fetch_source(SOURCE))

        assert not result.ok
        assert "HTTP 404" in result.error

    def test_only_reddit_sources(self, fake_client_factory, registry) -> None:
        client = fake_client_factory()
        assert asyncio.run(RedditFetcher(client, registry).fetch("philosophy")) == []
        assert client.calls == []

    def test_malformed_post_is_skipped(self, fake_client_factory, registry) -> None:
        client = fake_client_factory({LISTING_URL: _listing(_post("good"), _post("bad", score="n/a"))})
        result = asyncio.run(RedditFetcher(client, registry).fetch_source(SOURCE))

        assert result.ok
        assert [a.id for a in result.articles] == ["reddit-good"]

    def test_bad_subreddit_does_not_sink_the_others(self, fake_client_factory) -> None:
        registry = SourceRegistry.from_dict(
            {
                "categories": ["technology"],
                "sources": [
                    {"name": "r/good", "url": "https://www.reddit.com/r/good/top.json", "category": "technology", "type": "reddit"},
                    {"name": "r/bad", "url": "https://www.reddit.com/r/bad/top.json", "category": "technology", "type": "reddit"},
                ],
            }
        )
        client = fake_client_factory(
            {
                "https://www.reddit.com/r/good/top.json": _listing(_post("g")),
                "https://www.reddit.com/r/bad/top.json": RuntimeError("connection reset mid-stream"),
            }
        )
        result = asyncio.run(Aggregator([RedditFetcher(client, registry)]).fetch_category("technology"))

        assert [a.id for a in result.articles] == ["reddit-g"]
        assert [s.source for s in result.failed_sources] == ["r/bad"]
