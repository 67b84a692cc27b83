"""
Feed and subscription-list parsing.

feedparser already understands RSS 0.9x/1.0/2.0 and Atom; this module maps
its result onto CanonicalFeed / CanonicalItem with a fixed field priority so
alternate field names never leak past this boundary:

- body:      encoded content (content:encoded / atom content) > summary
- author:    author > dc:creator
- published: published > updated

OPML subscription lists are parsed with BeautifulSoup's XML mode and walked
in document order at any nesting depth.
"""

from __future__ import annotations

from datetime import datetime, timezone
import io
import logging
from typing import Any
from urllib.parse import urlsplit

from bs4 import BeautifulSoup
import feedparser

from ..config import ExtractConfig
from ..core.types import CanonicalFeed, CanonicalItem, Subscription
from ..errors import ParseError
from ..fetch.extractor import extract_text

logger = logging.getLogger(__name__)

DEFAULT_ITEM_TITLE = "Untitled"
DEFAULT_FEED_TITLE = "Untitled Feed"


def parse_feed(raw: bytes | str, extract_cfg: ExtractConfig | None = None) -> CanonicalFeed:
    """Parse a raw RSS/Atom payload into a CanonicalFeed.

    Args:
        raw: Feed document bytes (or text)
        extract_cfg: Extractor chain used to derive plain-text snippets

    Returns:
        CanonicalFeed with items in document order

    Raises:
        ParseError: The payload is not a recognizable feed
    """
    extract_cfg = extract_cfg or ExtractConfig()
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    parsed = feedparser.parse(io.BytesIO(raw))
    if parsed.bozo and not parsed.entries and not parsed.feed:
        raise ParseError(f"Malformed feed: {parsed.get('bozo_exception')}")
    if not parsed.version and not parsed.entries:
        raise ParseError("Payload is not an RSS or Atom feed")

    feed_info = parsed.feed
    items = [_to_item(entry, extract_cfg) for entry in parsed.entries]
    return CanonicalFeed(
        title=_first(feed_info, "title") or DEFAULT_FEED_TITLE,
        description=_first(feed_info, "subtitle", "description"),
        link=_first(feed_info, "link"),
        items=items,
    )


def _to_item(entry: Any, extract_cfg: ExtractConfig) -> CanonicalItem:
    body = _encoded_content(entry) or _first(entry, "summary")
    snippet_source = _first(entry, "summary") or body
    snippet = None
    if snippet_source:
        snippet = extract_text(snippet_source, extract_cfg.primary, extract_cfg.fallback)
    return CanonicalItem(
        title=_first(entry, "title") or DEFAULT_ITEM_TITLE,
        link=_first(entry, "link"),
        guid=_first(entry, "id"),
        published_at=_published(entry),
        body_html=body,
        snippet=snippet,
        author=_first(entry, "author", "dc_creator", "creator"),
    )


def _encoded_content(entry: Any) -> str | None:
    for block in entry.get("content") or []:
        value = block.get("value")
        if value and value.strip():
            return value
    return None


def _published(entry: Any) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        value = entry.get(key)
        if value:
            return datetime(*value[:6], tzinfo=timezone.utc)
    return None


def _first(source: Any, *keys: str) -> str | None:
    """Return the first non-blank string among keys; blank counts as absent."""
    for key in keys:
        value = source.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def load_subscription_list(opml: bytes | str) -> list[Subscription]:
    """Parse an OPML document into subscription candidates.

    Every outline carrying an xmlUrl attribute becomes a candidate, in
    document order. The name falls back from title to text to the feed
    URL's host. Duplicates are kept here; the feed set drops them on add.

    Raises:
        ParseError: The payload is not an OPML document
    """
    soup = BeautifulSoup(opml, "xml")
    if soup.find("opml") is None:
        raise ParseError("Not an OPML document")

    candidates: list[Subscription] = []
    for outline in soup.find_all("outline"):
        url = (outline.get("xmlUrl") or outline.get("xmlurl") or "").strip()
        if not url:
            continue
        name = (outline.get("title") or "").strip() or (outline.get("text") or "").strip()
        if not name:
            name = urlsplit(url).hostname or url
        candidates.append(Subscription(url=url, name=name))
    return candidates
