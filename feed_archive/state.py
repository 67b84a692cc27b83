"""
Article read/favorite state and notes.

State changes are tri-state: an omitted flag keeps its stored value. A
transition of the favorite flag from false to true on an article that has
been materialized submits resource localization to the background pool;
the caller gets its answer before localization finishes.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Any, Callable

from .activity import ActivityLog, ActivityType
from .core.entry import dated_dir, safe_file_name
from .core.types import ArticleStateView
from .errors import StorageError
from .materialize.collector import ResourceCollector
from .materialize.frontmatter import render_front_matter
from .storage import ArchiveStore
from .tasks import BackgroundTasks
from .utils.logging import log_event

logger = logging.getLogger(__name__)


class ArticleStateService:
    """Applies state changes and writes notes.

    Args:
        store: Archive store
        activity: Activity log receiving state and note events
        collector: Resource collector used on favorite transitions
        tasks: Background pool for localization
        notes_dir: Root directory for Markdown notes
        clock: Returns the current UTC datetime
    """

    def __init__(
        self,
        store: ArchiveStore,
        activity: ActivityLog,
        collector: ResourceCollector,
        tasks: BackgroundTasks,
        notes_dir: Path,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.activity = activity
        self.collector = collector
        self.tasks = tasks
        self.notes_dir = Path(notes_dir)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def set_article_state(
        self,
        article_id: str,
        is_read: bool | None = None,
        is_favorite: bool | None = None,
    ) -> ArticleStateView:
        """Update the flags of an article; None leaves a flag unchanged.

        Raises:
            StorageError: The article does not exist
        """
        existing = await self.store.get_state(article_id) or ArticleStateView(article_id)
        next_read = existing.is_read if is_read is None else bool(is_read)
        next_fav = existing.is_favorite if is_favorite is None else bool(is_favorite)

        await self.store.set_state(article_id, next_read, next_fav)

        if next_fav and not existing.is_favorite:
            await self.schedule_localization(article_id)

        view = ArticleStateView(article_id, next_read, next_fav)
        await self.activity.record(
            ActivityType.STATE,
            article_id,
            {"isRead": next_read, "isFavorite": next_fav},
        )
        return view

    async def schedule_localization(self, article_id: str) -> bool:
        """Submit localization for a materialized article. Returns True if submitted."""
        article = await self.store.get_article(article_id)
        if article is None or not article.markdown_path:
            return False
        self.tasks.submit(
            f"localize:{article_id[:12]}",
            self.collector.download_resources(Path(article.markdown_path)),
        )
        log_event(
            logger,
            "Localization scheduled",
            event="localize_scheduled",
            article_id=article_id,
            path=article.markdown_path,
        )
        return True

    async def add_note(self, article_id: str, title: str | None, content: str | None) -> dict[str, Any]:
        """Write a Markdown note for an article and record it.

        Raises:
            StorageError: The article does not exist
        """
        now = self._clock()
        directory = dated_dir(self.notes_dir, now)
        directory.mkdir(parents=True, exist_ok=True)
        slug = safe_file_name(title or f"note-{article_id[:8]}")
        path = directory / f"{slug}.md"
        if path.exists():
            path = directory / f"{slug}-{now.strftime('%H%M%S%f')}.md"

        header = render_front_matter(
            {"article_id": article_id, "title": title or None, "created_at": now.isoformat()}
        )
        path.write_text(f"{header}\n{content or ''}\n", encoding="utf-8")

        try:
            note_id = await self.store.add_note(article_id, str(path))
        except StorageError:
            path.unlink(missing_ok=True)
            raise
        await self.activity.record(
            ActivityType.NOTE,
            article_id,
            {"notePath": str(path), "title": title or None},
        )
        return {"ok": True, "id": note_id, "articleId": article_id, "notePath": str(path)}

    async def list_notes(self, article_id: str) -> dict[str, Any]:
        notes = await self.store.list_notes(article_id)
        for note in notes:
            created = note.get("createdAt")
            note["createdAt"] = created.isoformat() if created else None
        return {"articleId": article_id, "notes": notes}
