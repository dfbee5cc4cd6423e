"""
trending_reads

Aggregates RSS/Atom feeds, Hacker News searches and Reddit listings into a
scored, deduplicated reading list per category.

Pipeline: fetch (concurrent, per source) -> parse -> score -> validate -> deduplicate
-> normalize (per source kind) -> sort -> snapshot / TTL cache

Example
-------
import asyncio
from trending_reads.pipeline import run_pipeline

snapshot, results = asyncio.run(run_pipeline(categories=["technology"]))
for article in snapshot.categories["technology"][:5]:
    print(article.score, article.source, article.title)
"""
from .types import Article, FeedItem, FeedSource, SourceResult
from .pipeline import Aggregator, CategoryResult, run_pipeline
from .service import ArticleService, SnapshotReader

__all__ = [
    "Article",
    "FeedItem",
    "FeedSource",
    "SourceResult",
    "Aggregator",
    "CategoryResult",
    "run_pipeline",
    "ArticleService",
    "SnapshotReader",
]
