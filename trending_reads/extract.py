from __future__ import annotations

import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup

_WS_RE = re.compile(r"\s+")

# Hosts whose links point back at the discussion rather than the article
_DISCUSSION_HOSTS = ("reddit.com",)


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = _WS_RE.sub(" ", text).strip()
    return text


def strip_html(html_fragment: str | None) -> str:
    """Convert an HTML snippet (e.g., RSS title or description) to plain text.

    Tags are removed (not escaped), named and numeric character references are
    decoded, and whitespace is collapsed.
    """

    if not html_fragment:
        return ""
    if "<" not in html_fragment and "&" not in html_fragment:
        return normalize_text(html_fragment)
    soup = BeautifulSoup(html_fragment, "lxml")
    for tag in soup.select("script, style"):
        tag.decompose()
    return normalize_text(soup.get_text())


def truncate(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]


def is_http_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        p = urlparse(url.strip())
    except ValueError:
        return False
    return p.scheme in {"http", "https"} and bool(p.netloc)


def _is_discussion_host(url: str) -> bool:
    host = urlparse(url).netloc.lower().split(":")[0]
    return any(host == h or host.endswith("." + h) for h in _DISCUSSION_HOSTS)


def extract_external_link(description_html: str | None) -> str | None:
    """Return the first anchor in a Reddit item description that leaves reddit.com."""

    if not description_html or "href" not in description_html:
        return None
    soup = BeautifulSoup(description_html, "lxml")
    for a in soup.find_all("a", href=True):
        href = str(a.get("href") or "").strip()
        if not is_http_url(href):
            continue
        if _is_discussion_host(href):
            continue
        return href
    return None


def is_reddit_source(name: str, url: str) -> bool:
    return name.startswith("r/") or _is_discussion_host(url)
