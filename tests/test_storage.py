"""Tests for trending_reads.storage."""

import json
from datetime import datetime, timezone

import pandas as pd
import pytest

from trending_reads.exceptions import SnapshotUnavailableError
from trending_reads.storage import (
    Snapshot,
    build_snapshot,
    read_snapshot,
    snapshot_to_frame,
    write_frame,
    write_snapshot,
)

GENERATED = datetime(2026, 10, 17, 6, 0, tzinfo=timezone.utc)


def test_snapshot_document_shape(tmp_path, article_factory, now) -> None:
    article = article_factory("a", "https://a.example/1", score=88, published_at=now, description="Some text")
    path = write_snapshot(tmp_path / "public" / "feeds.json", build_snapshot({"technology": [article]}, GENERATED))

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["generatedAt"] == "2026-10-17T06:00:00Z"
    assert doc["categories"]["technology"] == [
        {
            "id": "a",
            "title": "Article a title",
            "url": "https://a.example/1",
            "source": "Test Source",
            "category": "technology",
            "score": 88,
            "kind": "rss",
            "description": "Some text",
            "publishedAt": "2026-10-17T12:00:00Z",
        }
    ]


def test_read_back(tmp_path, article_factory) -> None:
    articles = [article_factory("a", "https://a.example/1"), article_factory("b", "https://a.example/2")]
    path = write_snapshot(tmp_path / "feeds.json", build_snapshot({"technology": articles, "science": []}, GENERATED))

    snapshot = read_snapshot(path)
    assert snapshot.generated_at == GENERATED
    assert snapshot.categories["technology"] == articles
    assert snapshot.categories["science"] == []


def test_missing_file(tmp_path) -> None:
    with pytest.raises(SnapshotUnavailableError, match="not found"):
        read_snapshot(tmp_path / "feeds.json")


@pytest.mark.parametrize(
    "content",
    ["not json", "[]", '{"categories": {}}', '{"generatedAt": "2026-10-17T06:00:00Z", "categories": {"x": [{"title": "t"}]}}'],
)
def test_malformed_documents(tmp_path, content) -> None:
    path = tmp_path / "feeds.json"
    path.write_text(content)
    with pytest.raises(SnapshotUnavailableError):
        read_snapshot(path)


def test_no_temp_files_left_behind(tmp_path, article_factory) -> None:
    write_snapshot(tmp_path / "feeds.json", build_snapshot({"technology": []}, GENERATED))
    assert [p.name for p in tmp_path.iterdir()] == ["feeds.json"]


def test_csv_export(tmp_path, article_factory, now) -> None:
    snapshot = Snapshot(
        generated_at=GENERATED,
        categories={
            "technology": [article_factory("a", "https://a.example/1", published_at=now)],
            "science": [article_factory("b", "https://b.example/1")],
            "philosophy": [],
        },
    )
    df = snapshot_to_frame(snapshot)
    assert list(df["id"]) == ["a", "b"]
    assert df.loc[0, "generatedAt"] == "2026-10-17T06:00:00Z"

    path = write_frame(tmp_path / "out" / "articles.csv", df)
    back = pd.read_csv(path)
    assert list(back["url"]) == ["https://a.example/1", "https://b.example/1"]


def test_empty_snapshot_frame() -> None:
    assert snapshot_to_frame(build_snapshot({"technology": []}, GENERATED)).empty
