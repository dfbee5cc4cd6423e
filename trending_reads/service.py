from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from trending_reads.cache import TtlCache
from trending_reads.exceptions import CategoryUnavailableError
from trending_reads.merge import filter_by_search
from trending_reads.pipeline import Aggregator
from trending_reads.storage import Snapshot, read_snapshot
from trending_reads.types import Article

logger = logging.getLogger(__name__)


class RequestSequencer:
    """Monotonic tokens per channel; only the latest token is current."""

    def __init__(self) -> None:
        self._latest: dict[str, int] = {}

    def next(self, channel: str = "default") -> int:
        token = self._latest.get(channel, 0) + 1
        self._latest[channel] = token
        return token

    def is_current(self, token: int, channel: str = "default") -> bool:
        return self._latest.get(channel) == token


@dataclass
class ViewState:
    category: str
    query: str = ""
    articles: list[Article] = field(default_factory=list)
    error: Optional[str] = None
    from_cache: bool = False


class ArticleService:
    """Client-cache mode: serve categories from a TTL cache, refreshing on demand.

    Fresh entries are returned without fetching. Stale entries are returned at
    once while a background refresh overwrites them. At most one refresh per
    category is in flight; concurrent callers share it.
    """

    def __init__(self, aggregator: Aggregator, cache: TtlCache) -> None:
        self._aggregator = aggregator
        self._cache = cache
        self._inflight: dict[str, asyncio.Task[list[Article]]] = {}
        self._background: set[asyncio.Task[None]] = set()
        self._sequencer = RequestSequencer()
        self.current: Optional[ViewState] = None

    def _cached(self, category: str, stale: bool = False) -> Optional[list[Article]]:
        data = self._cache.get_stale(category) if stale else self._cache.get_cached(category)
        if data is None:
            return None
        try:
            return [Article.from_dict(d) for d in data]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("ignoring malformed cache entry for %s: %s", category, e)
            return None

    def is_cached(self, category: str) -> bool:
        return self._cache.is_fresh(category)

    async def _do_refresh(self, category: str) -> list[Article]:
        result = await self._aggregator.fetch_category(category)
        if result.failed:
            raise CategoryUnavailableError(category)
        try:
            self._cache.set_cache(category, [a.to_dict() for a in result.articles])
        except OSError as e:
            logger.warning("could not persist cache for %s: %s", category, e)
        return result.articles

    async def refresh(self, category: str) -> list[Article]:
        task = self._inflight.get(category)
        if task is None:
            task = asyncio.ensure_future(self._do_refresh(category))
            self._inflight[category] = task
            task.add_done_callback(lambda _t, c=category: self._inflight.pop(c, None))
        return await asyncio.shield(task)

    async def get_articles(self, category: str) -> list[Article]:
        fresh = self._cached(category)
        if fresh is not None:
            return fresh

        stale = self._cached(category, stale=True)
        if stale:
            self._schedule_refresh(category)
            return stale

        return await self.refresh(category)

    def _schedule_refresh(self, category: str, token: Optional[int] = None) -> None:
        task = asyncio.ensure_future(self._background_refresh(category, token))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_refresh(self, category: str, token: Optional[int]) -> None:
        try:
            articles = await self.refresh(category)
        except CategoryUnavailableError as e:
            # stale data stays on screen
            logger.warning("background refresh failed: %s", e)
            return

        view = self.current
        if token is not None and view is not None and view.category == category \
                and self._sequencer.is_current(token, "view"):
            view.articles = filter_by_search(articles, view.query)
            view.from_cache = False

    async def load(self, category: str, query: str = "") -> Optional[ViewState]:
        """Load a category for display; returns None if superseded by a later load."""

        token = self._sequencer.next("view")
        try:
            fresh = self._cached(category)
            if fresh is not None:
                state = ViewState(category, query, filter_by_search(fresh, query), from_cache=True)
            else:
                stale = self._cached(category, stale=True)
                if stale:
                    self._schedule_refresh(category, token)
                    state = ViewState(category, query, filter_by_search(stale, query), from_cache=True)
                else:
                    articles = await self.refresh(category)
                    state = ViewState(category, query, filter_by_search(articles, query))
        except CategoryUnavailableError as e:
            state = ViewState(category, query, error=str(e))

        if not self._sequencer.is_current(token, "view"):
            logger.debug("discarding superseded load of %s", category)
            return None
        self.current = state
        return state

    async def drain(self) -> None:
        """Wait for scheduled background refreshes to settle."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        pending = list(self._background) + list(self._inflight.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class SnapshotReader:
    """Snapshot mode: serve categories from the generated document only.

    The document is read once and kept in memory; ``refresh`` drops the
    in-memory copy and re-reads the same file. Nothing is fetched on demand.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._snapshot: Optional[Snapshot] = None

    def load(self) -> Snapshot:
        if self._snapshot is None:
            self._snapshot = read_snapshot(self.path)
        return self._snapshot

    def refresh(self) -> Snapshot:
        self._snapshot = None
        return self.load()

    def articles(self, category: str, query: str = "") -> list[Article]:
        return filter_by_search(self.load().categories.get(category, []), query)
