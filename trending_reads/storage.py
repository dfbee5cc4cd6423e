from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Sequence

import pandas as pd

from trending_reads.dates import parse_dt, to_iso, utc_now
from trending_reads.exceptions import SnapshotUnavailableError
from trending_reads.types import Article


@dataclass(frozen=True)
class Snapshot:
    generated_at: datetime
    categories: dict[str, list[Article]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": to_iso(self.generated_at),
            "categories": {
                cat: [a.to_dict() for a in articles]
                for cat, articles in self.categories.items()
            },
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Snapshot":
        generated_at = parse_dt(d.get("generatedAt"))
        cats = d.get("categories")
        if generated_at is None or not isinstance(cats, dict):
            raise SnapshotUnavailableError("snapshot document is missing generatedAt/categories")
        try:
            categories = {
                str(cat): [Article.from_dict(a) for a in (articles or [])]
                for cat, articles in cats.items()
            }
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotUnavailableError(f"malformed article in snapshot: {e}") from e
        return cls(generated_at=generated_at, categories=categories)


def build_snapshot(categories: Mapping[str, Sequence[Article]], generated_at: datetime | None = None) -> Snapshot:
    return Snapshot(
        generated_at=generated_at or utc_now(),
        categories={cat: list(articles) for cat, articles in categories.items()},
    )


def write_snapshot(path: Path, snapshot: Snapshot) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(snapshot.to_dict(), f, ensure_ascii=False)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return path


def read_snapshot(path: Path) -> Snapshot:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise SnapshotUnavailableError(f"snapshot not found: {path}") from e
    except (OSError, ValueError) as e:
        raise SnapshotUnavailableError(f"snapshot unreadable: {path} ({e})") from e
    if not isinstance(raw, dict):
        raise SnapshotUnavailableError(f"snapshot is not a JSON object: {path}")
    return Snapshot.from_dict(raw)


def articles_to_frame(articles: Sequence[Article]) -> pd.DataFrame:
    rows = []
    for a in articles:
        d = a.to_dict()
        d.setdefault("description", None)
        d.setdefault("thumbnail", None)
        # Normalize datetime for parquet
        d["publishedAt"] = pd.to_datetime(d.get("publishedAt"), utc=True, errors="coerce")
        rows.append(d)
    return pd.DataFrame(rows)


def snapshot_to_frame(snapshot: Snapshot) -> pd.DataFrame:
    frames = [articles_to_frame(articles) for articles in snapshot.categories.values() if articles]
    if not frames:
        return pd.DataFrame([])
    df = pd.concat(frames, ignore_index=True)
    df.insert(0, "generatedAt", to_iso(snapshot.generated_at))
    return df


def write_frame(path: Path, df: pd.DataFrame) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(path, index=False)
        return path
    # default to csv
    df.to_csv(path, index=False, encoding="utf-8")
    return path
