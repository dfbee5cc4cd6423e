from __future__ import annotations

import asyncio
import json
import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

import aiohttp

from trending_reads.config import Config
from trending_reads.exceptions import FetchError

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"
JSON_ACCEPT = "application/json, */*"


class _RetryableStatus(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status


@dataclass
class RetryPolicy:
    max_attempts: int = 2
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 4.0
    retry_statuses: set[int] = field(default_factory=lambda: {429, 502, 503, 504})

    def backoff(self, attempt: int) -> float:
        """Jittered exponential delay before attempt ``attempt + 1``."""
        delay = min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))
        return delay * random.uniform(0.7, 1.3)


class DomainRateLimiter:
    """Sliding-window limit of N requests per period for each host."""

    def __init__(self, max_requests_per_period: int, period_seconds: float) -> None:
        self._max = max(1, max_requests_per_period)
        self._period = period_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._sent: dict[str, deque[float]] = {}

    async def acquire(self, url: str) -> None:
        host = urlparse(url).netloc.lower()
        lock = self._locks.setdefault(host, asyncio.Lock())
        sent = self._sent.setdefault(host, deque())
        loop = asyncio.get_running_loop()

        async with lock:
            while True:
                now = loop.time()
                while sent and sent[0] <= now - self._period:
                    sent.popleft()
                if len(sent) < self._max:
                    sent.append(now)
                    return
                await asyncio.sleep(sent[0] + self._period - now)


class HttpClient:
    """Fetches text or JSON. Every failure surfaces as FetchError."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        limiter: DomainRateLimiter,
        retry: RetryPolicy,
        semaphore: asyncio.Semaphore,
        user_agent: str,
        timeout_seconds: float,
    ) -> None:
        self._session = session
        self._limiter = limiter
        self._retry = retry
        self._sem = semaphore
        self._ua = user_agent
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def _attempt(self, url: str, params: Optional[Mapping[str, str]], headers: dict[str, str]) -> str:
        await self._limiter.acquire(url)
        async with self._sem:
            async with self._session.get(url, params=params, headers=headers, timeout=self._timeout) as r:
                if r.status in self._retry.retry_statuses:
                    raise _RetryableStatus(r.status)
                if r.status >= 400:
                    raise FetchError(url, f"HTTP {r.status}")
                return await r.text(errors="ignore")

    async def get_text(
        self,
        url: str,
        params: Optional[Mapping[str, str]] = None,
        accept: str = FEED_ACCEPT,
    ) -> str:
        headers = {
            "User-Agent": self._ua,
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.9",
        }

        reason = "no attempt made"
        for attempt in range(1, self._retry.max_attempts + 1):
            try:
                return await self._attempt(url, params, headers)
            except asyncio.TimeoutError:
                reason = "timeout"
            except _RetryableStatus as e:
                reason = str(e)
            except aiohttp.ClientError as e:
                reason = f"network error: {e.__class__.__name__}"

            if attempt < self._retry.max_attempts:
                delay = self._retry.backoff(attempt)
                logger.debug("retrying %s in %.2fs (%s)", url, delay, reason)
                await asyncio.sleep(delay)

        raise FetchError(url, reason)

    async def get_json(self, url: str, params: Optional[Mapping[str, str]] = None) -> Any:
        text = await self.get_text(url, params=params, accept=JSON_ACCEPT)
        if not text or not text.strip():
            raise FetchError(url, "empty response")
        try:
            return json.loads(text)
        except ValueError as e:
            raise FetchError(url, f"invalid JSON: {e}") from e


def build_client(session: aiohttp.ClientSession, cfg: Config) -> HttpClient:
    max_requests, period = cfg.rate_limit
    return HttpClient(
        session=session,
        limiter=DomainRateLimiter(max_requests_per_period=max_requests, period_seconds=period),
        retry=RetryPolicy(**cfg.retry),
        semaphore=asyncio.Semaphore(cfg.max_in_flight_requests),
        user_agent=cfg.user_agent,
        timeout_seconds=cfg.timeout_seconds,
    )
