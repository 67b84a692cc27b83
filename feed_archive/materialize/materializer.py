"""
Article materialization.

Turns a remote article into a Markdown document with front matter under
articles_dir/YYYY/MM/, records it as an Article row (markdown_path set) and
appends a materialize activity event. If the article is already a favorite,
its resources are localized in the background.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import urlsplit

from ..activity import ActivityLog, ActivityType
from ..config import MaterializeConfig
from ..core.entry import dated_dir, short_hash, slugify, stable_id
from ..core.types import ArticleRecord, MaterializedArticle
from ..errors import ValidationError
from ..fetch.cache import HttpCache
from ..storage import ArchiveStore
from ..utils.logging import log_event
from .frontmatter import render_document
from .markdown import html_to_markdown

if TYPE_CHECKING:
    from ..state import ArticleStateService

logger = logging.getLogger(__name__)


def document_slug(url: str, title: str | None) -> str:
    """Slug from the title, else from host and last path segment."""
    if title and title.strip():
        return slugify(title)
    parts = urlsplit(url)
    segments = [seg for seg in parts.path.split("/") if seg]
    tail = segments[-1] if segments else ""
    return slugify(f"{parts.hostname or ''}-{tail}")


def document_path(articles_dir: Path, url: str, title: str | None, now: datetime) -> Path:
    return dated_dir(articles_dir, now) / f"{document_slug(url, title)}-{short_hash(url)}.md"


class ArticleMaterializer:
    """Saves articles as self-contained Markdown documents.

    Args:
        http_cache: Cache-aware fetcher for article pages
        store: Archive store
        activity: Activity log
        state: State service; used to localize already-favorited articles
        articles_dir: Root directory for documents
        cfg: Region selection and download settings
        clock: Returns the current UTC datetime
    """

    def __init__(
        self,
        http_cache: HttpCache,
        store: ArchiveStore,
        activity: ActivityLog,
        state: ArticleStateService,
        articles_dir: Path,
        cfg: MaterializeConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.http_cache = http_cache
        self.store = store
        self.activity = activity
        self.state = state
        self.articles_dir = Path(articles_dir)
        self.cfg = cfg or MaterializeConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def materialize_article(
        self,
        url: str,
        feed_url: str | None = None,
        title: str | None = None,
        published_at: datetime | None = None,
        html: str | bytes | None = None,
    ) -> MaterializedArticle:
        """Fetch (unless html is given), convert and persist an article.

        Raises:
            ValidationError: The URL is malformed or blocked
            FetchError: The page could not be fetched and nothing was cached
        """
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValidationError(url, "Article URL must be an absolute http(s) URL")

        if html is None:
            response = await self.http_cache.fetch_cached(url, "article")
            html = response.body

        body = html_to_markdown(html, region=self.cfg.region)
        now = self._clock()
        path = document_path(self.articles_dir, url, title, now)
        front_matter: dict[str, Any] = {
            "title": title or None,
            "url": url,
            "feed_url": feed_url or None,
            "published_at": published_at.isoformat() if published_at else None,
            "fetched_at": now.isoformat(),
            "source": "html",
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_document(front_matter, body), encoding="utf-8")

        owner = feed_url or f"{parts.scheme}://{parts.netloc}"
        await self.store.ensure_feed(owner, parts.hostname)
        article_id = stable_id(owner, url)
        await self.store.upsert_article(
            ArticleRecord(
                id=article_id,
                feed_url=owner,
                title=title or None,
                link=url,
                published_at=published_at,
                markdown_path=str(path),
            )
        )

        current = await self.store.get_state(article_id)
        if current is not None and current.is_favorite:
            await self.state.schedule_localization(article_id)

        await self.activity.record(
            ActivityType.MATERIALIZE,
            article_id,
            {"url": url, "markdownPath": str(path), "title": title or None},
        )
        log_event(
            logger,
            "Article materialized",
            event="article_materialized",
            article_id=article_id,
            url=url,
            path=str(path),
        )
        return MaterializedArticle(
            article_id=article_id,
            markdown_path=str(path),
            front_matter={key: value for key, value in front_matter.items() if value is not None},
        )
