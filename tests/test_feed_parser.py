"""Tests for trending_reads.feed_parser."""

import pytest

from trending_reads.exceptions import FeedParseError
from trending_reads.feed_parser import extract_attr, extract_tag, looks_like_html_page, parse_feed


class TestExtractTag:
    def test_plain_text(self) -> None:
        assert extract_tag("<title>Hello</title>", "title") == "Hello"

    def test_cdata(self) -> None:
        assert extract_tag("<title><![CDATA[Hello <b>there</b>]]></title>", "title") == "Hello <b>there</b>"

    def test_case_insensitive_with_attributes(self) -> None:
        block = '<TITLE type="html" xml:lang="en">Mixed Case</TITLE>'
        assert extract_tag(block, "title") == "Mixed Case"

    def test_plain_text_entities_are_decoded(self) -> None:
        assert extract_tag("<title>AT&amp;T &#8217;s plan</title>", "title") == "AT&T ’s plan"

    def test_missing_tag_returns_empty(self) -> None:
        assert extract_tag("<title>x</title>", "description") == ""

    def test_does_not_match_namespaced_variant(self) -> None:
        block = "<media:title>Media</media:title><title>Real</title>"
        assert extract_tag(block, "title") == "Real"

    def test_self_closing_tag_has_no_text(self) -> None:
        assert extract_tag('<link href="https://a.example/x"/>', "link") == ""


class TestExtractAttr:
    def test_reads_attribute_from_self_closing_tag(self) -> None:
        block = '<media:thumbnail width="10" url="https://img.example/a.jpg"/>'
        assert extract_attr(block, "media:thumbnail", "url") == "https://img.example/a.jpg"

    def test_single_quoted_attribute(self) -> None:
        assert extract_attr("<link href='https://a.example/'/>", "link", "href") == "https://a.example/"


class TestLooksLikeHtmlPage:
    def test_doctype(self, load_fixture) -> None:
        assert looks_like_html_page(load_fixture("error_page.html"))

    def test_html_root_without_feed(self) -> None:
        assert looks_like_html_page("<html><body>Nope</body></html>")

    def test_rss_is_not_html(self, load_fixture) -> None:
        assert not looks_like_html_page(load_fixture("rss_cdata.xml"))

    def test_doctype_inside_feed_content_is_ignored(self) -> None:
        text = "<rss><channel><item><description><![CDATA[<!DOCTYPE html>]]></description></item></channel></rss>"
        assert not looks_like_html_page(text)


class TestParseFeed:
    def test_rss_with_cdata_titles(self, load_fixture) -> None:
        items = parse_feed(load_fixture("rss_cdata.xml"))

        assert len(items) == 2
        assert items[0].title == "Stoicism & the Modern Mind"
        assert items[1].title == "Why Plato Still Matters"
        assert items[0].link == "https://example.com/essays/stoicism"
        assert items[0].pub_date == "Mon, 12 Oct 2026 09:30:00 GMT"

    def test_rss_thumbnails(self, load_fixture) -> None:
        items = parse_feed(load_fixture("rss_cdata.xml"))

        assert items[0].thumbnail == "https://example.com/img/stoic.jpg"
        assert items[1].thumbnail == "https://example.com/img/plato.png"

    def test_rss_plain_description_is_decoded(self, load_fixture) -> None:
        items = parse_feed(load_fixture("rss_cdata.xml"))
        assert items[1].description == "Short & sweet."

    def test_atom_entries(self, load_fixture) -> None:
        items = parse_feed(load_fixture("atom.xml"))

        # the untitled entry is dropped
        assert [i.title for i in items] == [
            "Entanglement, explained",
            "Black holes evaporate faster than thought",
        ]
        assert items[0].link == "https://quantum.example.org/entanglement"
        assert items[1].link == "https://quantum.example.org/black-holes"

    def test_atom_date_and_description_fallbacks(self, load_fixture) -> None:
        items = parse_feed(load_fixture("atom.xml"))

        assert items[0].pub_date == "2026-10-16T08:00:00Z"
        assert items[1].pub_date == "2026-10-15T12:00:00Z"
        assert items[0].description == "<p>Spooky action, demystified.</p>"
        assert items[1].description == "<p>New calculations.</p>"
        assert items[1].thumbnail == "https://quantum.example.org/bh.jpg"

    def test_description_priority(self) -> None:
        text = (
            "<rss><channel><item><title>Ordered fields</title><link>https://a.example/1</link>"
            "<content>from content</content><summary>from summary</summary>"
            "<description>from description</description></item></channel></rss>"
        )
        assert parse_feed(text)[0].description == "from description"

    def test_item_without_link_is_dropped(self) -> None:
        text = (
            "<rss><channel>"
            "<item><title>No link here</title></item>"
            "<item><title>Has a link</title><link>https://a.example/2</link></item>"
            "</channel></rss>"
        )
        assert [i.title for i in parse_feed(text)] == ["Has a link"]

    def test_empty_feed_returns_no_items(self) -> None:
        text = "<?xml version='1.0'?><rss version='2.0'><channel><title>Quiet feed</title></channel></rss>"
        assert parse_feed(text) == []

    def test_html_error_page_raises(self, load_fixture) -> None:
        with pytest.raises(FeedParseError):
            parse_feed(load_fixture("error_page.html"))

    @pytest.mark.parametrize("payload", [None, "", "   ", "<rss></rss>"])
    def test_empty_payload_raises(self, payload) -> None:
        with pytest.raises(FeedParseError):
            parse_feed(payload)

    def test_non_feed_payload_raises(self) -> None:
        with pytest.raises(FeedParseError):
            parse_feed('{"status": "error", "message": "upstream did not answer in time"}')
