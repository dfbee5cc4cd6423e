class TrendingReadsError(Exception):
    """Base class for errors raised by trending_reads."""


class FetchError(TrendingReadsError):
    """Raised when a URL cannot be fetched (timeout, HTTP error, network error)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class FeedParseError(TrendingReadsError):
    """Raised when a payload is not a feed (HTML error page, empty body, bad JSON)."""


class CategoryUnavailableError(TrendingReadsError):
    """Raised when every source of a category failed."""

    def __init__(self, category: str) -> None:
        super().__init__(f"Failed to load articles for '{category}'. Try again.")
        self.category = category


class SnapshotUnavailableError(TrendingReadsError):
    """Raised when the snapshot document cannot be read."""
