"""
Core data types for the ingestion pipeline.

This module defines the records that flow between components:
- Subscription: A feed in the live feed set
- CanonicalItem / CanonicalFeed: Normalized feed data, independent of source format
- CacheEntry: Persistent HTTP cache row (conditional validators + last good body)
- CachedResponse: Result of a cache-aware fetch
- ArticleRecord: Article row as written by the normalizer and the materializer
- ArticleStateView: Read/favorite flags returned to callers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Subscription:
    """A feed URL with its display name."""

    url: str
    name: str


@dataclass
class CanonicalItem:
    """One normalized feed item.

    Optional fields are None when the source did not provide them; they are
    never defaulted to an empty string. The feed_* / article_id / state
    fields are filled in by the feed reader after persistence.

    Attributes:
        title: Item headline ("Untitled" when the source has none)
        link: Link to the original article
        guid: Source-provided unique identifier
        published_at: Publish timestamp (UTC)
        body_html: Full HTML body
        snippet: Plain-text preview
        author: Author name
    """

    title: str
    link: str | None = None
    guid: str | None = None
    published_at: datetime | None = None
    body_html: str | None = None
    snippet: str | None = None
    author: str | None = None
    article_id: str | None = None
    feed_url: str | None = None
    feed_title: str | None = None
    feed_name: str | None = None
    is_read: bool = False
    is_favorite: bool = False

    @property
    def has_content(self) -> bool:
        return bool(self.body_html and self.body_html.strip())


@dataclass
class CanonicalFeed:
    """A parsed feed with its items in document order."""

    title: str
    description: str | None = None
    link: str | None = None
    items: list[CanonicalItem] = field(default_factory=list)


@dataclass
class CacheEntry:
    """Persistent cache row for one URL.

    body is always the most recently known-good payload for the URL.
    """

    url: str
    kind: str
    status: int
    body: bytes
    content_type: str | None = None
    etag: str | None = None
    last_modified: str | None = None
    fetched_at: datetime | None = None


@dataclass
class CachedResponse:
    """Result of HttpCache.fetch_cached.

    error is set only on a stale-on-error fallback: the body is the last
    known-good payload and error is the failure that prevented a refresh.
    """

    url: str
    status: int
    body: bytes
    content_type: str | None
    from_cache: bool
    error: Exception | None = None


@dataclass
class ArticleRecord:
    """Article row as passed to the store's upsert."""

    id: str
    feed_url: str
    title: str | None = None
    guid: str | None = None
    link: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    content_html: str | None = None
    content_snippet: str | None = None
    markdown_path: str | None = None


@dataclass
class ArticleStateView:
    """Read/favorite flags of an article."""

    article_id: str
    is_read: bool = False
    is_favorite: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "articleId": self.article_id,
            "isRead": self.is_read,
            "isFavorite": self.is_favorite,
        }


@dataclass
class MaterializedArticle:
    """Outcome of materializing an article into a Markdown document."""

    article_id: str
    markdown_path: str
    front_matter: dict[str, Any]


@dataclass
class LocalizationResult:
    """Counters for one resource-localization pass.

    Attributes:
        downloaded: Resources fetched and written in this pass
        reused: Resources found already present in the assets directory
        skipped: References that were not attempted (unknown source URL, data URIs)
        failed: References whose download failed and were left unrewritten
    """

    downloaded: int = 0
    reused: int = 0
    skipped: int = 0
    failed: int = 0
    updated: bool = False
