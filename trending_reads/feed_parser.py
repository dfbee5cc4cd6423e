"""Tolerant RSS/Atom item extraction.

Feeds in the wild are frequently not well-formed XML (stray ampersands, HTML
inside descriptions, truncated documents), so items are located with a small
tag-extraction routine instead of an XML parser. Tag names are matched
case-insensitively and may carry arbitrary attributes; text may be plain
(XML-escaped) or wrapped in CDATA.
"""
from __future__ import annotations

import html
import re
from functools import lru_cache

from trending_reads.exceptions import FeedParseError
from trending_reads.extract import strip_html
from trending_reads.types import FeedItem

MIN_PAYLOAD_CHARS = 50

_ITEM_RE = re.compile(r"<(item|entry)(?:\s[^>]*)?(?<!/)>(.*?)</\1\s*>", re.IGNORECASE | re.DOTALL)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_ATTR_RE = re.compile(r"""([\w:.-]+)\s*=\s*(["'])(.*?)\2""", re.DOTALL)
_FEED_ROOT_RE = re.compile(r"<(rss|feed|rdf:rdf|channel)[\s>]", re.IGNORECASE)

_DESCRIPTION_TAGS = ("description", "summary", "content", "content:encoded")
_DATE_TAGS = ("pubDate", "published", "updated", "dc:date")


@lru_cache(maxsize=64)
def _tag_re(name: str) -> re.Pattern[str]:
    n = re.escape(name)
    return re.compile(
        rf"<{n}(?:\s[^>]*)?(?<!/)>\s*(?:<!\[CDATA\[(.*?)\]\]>\s*|(.*?))</{n}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


@lru_cache(maxsize=64)
def _open_tag_re(name: str) -> re.Pattern[str]:
    return re.compile(rf"<{re.escape(name)}(\s[^>]*)?/?>", re.IGNORECASE | re.DOTALL)


def _attrs(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    return {k.lower(): html.unescape(v) for k, _q, v in _ATTR_RE.findall(raw)}


def extract_tag(block: str, name: str) -> str:
    """Text content of the first ``<name>`` element in ``block`` ('' if absent).

    CDATA content is returned verbatim; plain content has its XML character
    references decoded.
    """

    m = _tag_re(name).search(block)
    if not m:
        return ""
    if m.group(1) is not None:
        return m.group(1).strip()
    text = (m.group(2) or "").strip()
    if "<![CDATA[" in text:
        # CDATA mixed with other text: unwrap sections, keep the rest as-is
        return _CDATA_RE.sub(lambda c: c.group(1), text).strip()
    return html.unescape(text)


def extract_attr(block: str, name: str, attr: str) -> str:
    """Value of ``attr`` on the first ``<name>`` element that carries it."""

    for m in _open_tag_re(name).finditer(block):
        value = _attrs(m.group(1)).get(attr.lower())
        if value:
            return value.strip()
    return ""


def _first(block: str, names: tuple[str, ...]) -> str:
    for name in names:
        value = extract_tag(block, name)
        if value:
            return value
    return ""


def _extract_link(block: str) -> str:
    link = extract_tag(block, "link")
    if link:
        return link

    # Atom: <link href="..."/>, possibly several with different rel values
    fallback = ""
    for m in _open_tag_re("link").finditer(block):
        attrs = _attrs(m.group(1))
        href = attrs.get("href", "").strip()
        if not href:
            continue
        rel = attrs.get("rel", "alternate").lower()
        if rel == "alternate":
            return href
        if not fallback:
            fallback = href
    return fallback


def _extract_thumbnail(block: str) -> str:
    thumb = extract_attr(block, "media:thumbnail", "url")
    if thumb:
        return thumb

    for m in _open_tag_re("media:content").finditer(block):
        attrs = _attrs(m.group(1))
        url = attrs.get("url", "").strip()
        if not url:
            continue
        medium = attrs.get("medium", "")
        ctype = attrs.get("type", "")
        if medium == "image" or ctype.startswith("image/") or (not medium and not ctype):
            return url

    for m in _open_tag_re("enclosure").finditer(block):
        attrs = _attrs(m.group(1))
        url = attrs.get("url", "").strip()
        if url and attrs.get("type", "").startswith("image/"):
            return url
    return ""


def looks_like_html_page(text: str) -> bool:
    """True for HTML documents served in place of a feed (error pages, captchas)."""

    lower = text.lower()
    root = _FEED_ROOT_RE.search(lower)
    doctype = lower.find("<!doctype html")
    if doctype != -1 and (root is None or doctype < root.start()):
        return True
    return lower.lstrip().startswith("<html") and root is None


def parse_item(block: str) -> FeedItem | None:
    title = strip_html(extract_tag(block, "title"))
    link = _extract_link(block)
    if not title or not link:
        return None
    return FeedItem(
        title=title,
        link=link,
        description=_first(block, _DESCRIPTION_TAGS),
        pub_date=_first(block, _DATE_TAGS),
        thumbnail=_extract_thumbnail(block),
    )


def parse_feed(text: str | None) -> list[FeedItem]:
    """Extract items from raw RSS or Atom markup.

    Raises FeedParseError when the payload is empty, is an HTML page, or has no
    feed root element. A valid feed without items yields an empty list.
    """

    if not text or len(text.strip()) < MIN_PAYLOAD_CHARS:
        raise FeedParseError("empty response")
    if looks_like_html_page(text):
        raise FeedParseError("got HTML instead of RSS/Atom")
    if not _FEED_ROOT_RE.search(text) and not _ITEM_RE.search(text):
        raise FeedParseError("not an RSS/Atom document")

    items: list[FeedItem] = []
    for m in _ITEM_RE.finditer(text):
        item = parse_item(m.group(2))
        if item is not None:
            items.append(item)
    return items
