"""Tests for feed and OPML normalization."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from feed_archive.errors import ParseError
from feed_archive.feeds.parser import load_subscription_list, parse_feed

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Example Blog</title>
    <link>https://blog.example.com/</link>
    <description>Posts about things</description>
    <item>
      <title>First post</title>
      <link>https://blog.example.com/first</link>
      <guid isPermaLink="false">post-1</guid>
      <pubDate>Mon, 06 Sep 2021 16:45:00 GMT</pubDate>
      <description>&lt;p&gt;Short &lt;b&gt;summary&lt;/b&gt;&lt;/p&gt;</description>
      <content:encoded><![CDATA[<p>Full <img src="/img/a.png" alt="A"> body</p>]]></content:encoded>
      <dc:creator>Jane Doe</dc:creator>
    </item>
    <item>
      <title></title>
      <link>https://blog.example.com/second</link>
      <description>Only a description</description>
    </item>
  </channel>
</rss>
"""

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <link href="https://atom.example.org/"/>
  <updated>2024-02-01T10:00:00Z</updated>
  <id>urn:uuid:feed</id>
  <entry>
    <title>Atom entry</title>
    <link href="https://atom.example.org/entry"/>
    <id>urn:uuid:entry-1</id>
    <updated>2024-02-01T09:30:00Z</updated>
    <author><name>Sam</name></author>
    <content type="html">&lt;p&gt;Atom body&lt;/p&gt;</content>
  </entry>
</feed>
"""

OPML = b"""<?xml version="1.0" encoding="UTF-8"?>
<opml version="2.0">
  <head><title>Subscriptions</title></head>
  <body>
    <outline text="Tech">
      <outline text="Hacker News" title="HN" type="rss" xmlUrl="https://news.ycombinator.com/rss"/>
      <outline text="Nested">
        <outline text="Deep Feed" type="rss" xmlUrl="https://deep.example.com/feed"/>
      </outline>
    </outline>
    <outline type="rss" xmlUrl="https://nameless.example.net/rss.xml"/>
    <outline text="Not a feed" htmlUrl="https://example.com/"/>
    <outline text="Duplicate" xmlUrl="https://news.ycombinator.com/rss"/>
  </body>
</opml>
"""


def test_rss_item_fields_follow_priority():
    feed = parse_feed(RSS)

    assert feed.title == "Example Blog"
    assert feed.link == "https://blog.example.com/"
    assert feed.description == "Posts about things"
    first = feed.items[0]
    assert first.title == "First post"
    assert first.link == "https://blog.example.com/first"
    assert first.guid == "post-1"
    assert first.published_at == datetime(2021, 9, 6, 16, 45, tzinfo=timezone.utc)
    assert "Full" in first.body_html and "summary" not in first.body_html
    assert first.snippet == "Short summary"
    assert first.author == "Jane Doe"


def test_missing_fields_are_absent_not_empty():
    second = parse_feed(RSS).items[1]

    assert second.title == "Untitled"
    assert second.guid is None
    assert second.published_at is None
    assert second.author is None
    assert second.body_html == "Only a description"
    assert second.has_content is True


def test_items_keep_document_order():
    links = [item.link for item in parse_feed(RSS).items]
    assert links == ["https://blog.example.com/first", "https://blog.example.com/second"]


def test_atom_uses_updated_when_published_is_missing():
    feed = parse_feed(ATOM)

    entry = feed.items[0]
    assert feed.title == "Atom Example"
    assert entry.guid == "urn:uuid:entry-1"
    assert entry.published_at == datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)
    assert entry.author == "Sam"
    assert "Atom body" in entry.body_html


def test_garbage_payload_raises_parse_error():
    with pytest.raises(ParseError):
        parse_feed(b"this is not a feed")


def test_opml_walks_nested_outlines_in_document_order():
    subs = load_subscription_list(OPML)

    assert [s.url for s in subs] == [
        "https://news.ycombinator.com/rss",
        "https://deep.example.com/feed",
        "https://nameless.example.net/rss.xml",
        "https://news.ycombinator.com/rss",
    ]
    assert subs[0].name == "HN"
    assert subs[1].name == "Deep Feed"
    assert subs[2].name == "nameless.example.net"


def test_non_opml_payload_raises_parse_error():
    with pytest.raises(ParseError):
        load_subscription_list(b"<html><body>nope</body></html>")
