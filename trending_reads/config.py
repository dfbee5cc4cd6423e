from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from trending_reads.types import SOURCE_TYPES, FeedSource

DEFAULT_CONFIG_DIR = Path(__file__).parent / "configs"


@dataclass(frozen=True)
class Config:
    raw: dict[str, Any]

    def _section(self, name: str) -> dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def timeout_seconds(self) -> float:
        return float(self._section("http").get("timeout_seconds", 10))

    @property
    def user_agent(self) -> str:
        return str(self._section("http").get("user_agent", "TrendingReads/1.0 (feed aggregator)"))

    @property
    def max_connections(self) -> int:
        return int(self._section("http").get("max_connections", 20))

    @property
    def max_in_flight_requests(self) -> int:
        return int(self._section("concurrency").get("max_in_flight_requests", 10))

    @property
    def rate_limit(self) -> tuple[int, float]:
        rl = self._section("rate_limit")
        return int(rl.get("max_requests_per_period", 5)), float(rl.get("period_seconds", 1.0))

    @property
    def retry(self) -> dict[str, Any]:
        rt = self._section("retry")
        return {
            "max_attempts": int(rt.get("max_attempts", 2)),
            "base_delay_seconds": float(rt.get("base_delay_seconds", 0.5)),
            "max_delay_seconds": float(rt.get("max_delay_seconds", 4.0)),
            "retry_statuses": set(int(x) for x in rt.get("retry_statuses", [429, 502, 503, 504])),
        }

    @property
    def max_items_per_feed(self) -> int:
        return int(self._section("feeds").get("max_items_per_feed", 10))

    @property
    def source_timeout_seconds(self) -> float:
        return float(self._section("feeds").get("source_timeout_seconds", 15))

    @property
    def feed_strategies(self) -> list[str]:
        return [str(s) for s in self._section("feeds").get("strategies", ["direct", "proxy", "rss2json"])]

    @property
    def proxy_template(self) -> str:
        return str(
            self._section("feeds").get("proxy_template", "https://api.codetabs.com/v1/proxy/?quest={url}")
        )

    @property
    def rss2json_endpoint(self) -> str:
        return str(self._section("feeds").get("rss2json_endpoint", "https://api.rss2json.com/v1/api.json"))

    @property
    def hackernews(self) -> dict[str, Any]:
        hn = self._section("hackernews")
        return {
            "enabled": bool(hn.get("enabled", True)),
            "endpoint": str(hn.get("endpoint", "https://hn.algolia.com/api/v1/search_by_date")),
            "hits_per_page": int(hn.get("hits_per_page", 15)),
            "min_points": int(hn.get("min_points", 10)),
            "comment_weight": float(hn.get("comment_weight", 2)),
        }

    @property
    def reddit_enabled(self) -> bool:
        return bool(self._section("reddit").get("enabled", True))

    @property
    def cache_ttl_seconds(self) -> float:
        return float(self._section("cache").get("ttl_minutes", 30)) * 60.0

    @property
    def cache_namespace(self) -> str:
        return str(self._section("cache").get("namespace", "trending-reads"))

    @property
    def cache_version(self) -> int:
        return int(self._section("cache").get("version", 1))

    @property
    def cache_path(self) -> Path:
        return Path(self._section("cache").get("path", "data/cache.json"))

    @property
    def snapshot_path(self) -> Path:
        return Path(self._section("storage").get("snapshot_path", "public/data/feeds.json"))

    @property
    def min_title_length(self) -> int:
        return int(self._section("validation").get("min_title_length", 5))


@dataclass(frozen=True)
class SourceRegistry:
    """Categories and the sources/search terms that feed each of them."""

    categories: tuple[str, ...]
    labels: dict[str, str] = field(default_factory=dict)
    search_terms: dict[str, tuple[str, ...]] = field(default_factory=dict)
    sources: tuple[FeedSource, ...] = ()

    def sources_for(self, category: str, type: str | None = None) -> list[FeedSource]:
        return [
            s for s in self.sources
            if s.category == category and (type is None or s.type == type)
        ]

    def terms_for(self, category: str) -> tuple[str, ...]:
        return self.search_terms.get(category, ())

    def label(self, category: str) -> str:
        return self.labels.get(category, category)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SourceRegistry":
        categories = tuple(str(c) for c in (raw.get("categories") or []))
        if not categories:
            raise ValueError("sources file must declare at least one category")

        def _check(cat: str, where: str) -> str:
            if cat not in categories:
                raise ValueError(f"unknown category '{cat}' in {where}")
            return cat

        terms: dict[str, tuple[str, ...]] = {}
        for cat, values in (raw.get("search_terms") or {}).items():
            terms[_check(str(cat), "search_terms")] = tuple(str(v) for v in (values or []))

        sources: list[FeedSource] = []
        for s in raw.get("sources") or []:
            if not s.get("enabled", True):
                continue
            stype = str(s.get("type", "rss"))
            if stype not in SOURCE_TYPES:
                raise ValueError(f"unknown source type '{stype}' for {s.get('name')}")
            sources.append(
                FeedSource(
                    name=str(s["name"]),
                    url=str(s["url"]),
                    category=_check(str(s["category"]), f"source {s['name']}"),
                    type=stype,
                )
            )

        labels = {str(k): str(v) for k, v in (raw.get("labels") or {}).items()}
        return cls(categories=categories, labels=labels, search_terms=terms, sources=tuple(sources))

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SourceRegistry":
        return cls.from_dict(load_yaml(path))


def load_yaml(path: str | Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: str | Path | None = None) -> Config:
    if path is None:
        path = DEFAULT_CONFIG_DIR / "config.yaml"
    return Config(raw=load_yaml(path))


def load_sources(path: str | Path | None = None) -> SourceRegistry:
    if path is None:
        path = DEFAULT_CONFIG_DIR / "sources.yaml"
    return SourceRegistry.from_yaml(path)
