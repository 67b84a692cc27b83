"""
Append-only activity log.

Every state change, note creation and materialization appends one event.
Events are never updated or deleted; listings and the Markdown review are
recomputed from the log with a time filter and a hard row cap.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
import json
import logging
from typing import Any, Callable

from .config import ActivityConfig
from .output.renderer import render_review
from .storage import ArchiveStore
from .utils.logging import log_event

logger = logging.getLogger(__name__)


class ActivityType(str, Enum):
    STATE = "state"
    NOTE = "note"
    MATERIALIZE = "materialize"


def decode_payload(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def describe(type_: str, payload: dict[str, Any]) -> str:
    """One-line detail for the review table."""
    if type_ == ActivityType.STATE.value:
        read = "yes" if payload.get("isRead") else "no"
        fav = "yes" if payload.get("isFavorite") else "no"
        return f"read={read}, fav={fav}"
    if type_ == ActivityType.NOTE.value:
        return f"note={payload.get('notePath') or ''}"
    if type_ == ActivityType.MATERIALIZE.value:
        return f"md={payload.get('markdownPath') or ''}"
    return ""


class ActivityLog:
    """Records and reads activity events.

    Args:
        store: Archive store
        cfg: Listing and export bounds
        clock: Returns the current UTC datetime
    """

    def __init__(
        self,
        store: ArchiveStore,
        cfg: ActivityConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.cfg = cfg or ActivityConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def record(
        self,
        type_: ActivityType,
        article_id: str | None,
        payload: dict[str, Any] | None = None,
    ) -> int:
        event_id = await self.store.append_activity(
            ActivityType(type_).value, article_id, payload or {}, created_at=self._clock()
        )
        log_event(
            logger,
            "Activity recorded",
            level=logging.DEBUG,
            event="activity_recorded",
            activity_type=ActivityType(type_).value,
            article_id=article_id,
        )
        return event_id

    async def list(self, limit: int = 50, offset: int = 0) -> dict[str, Any]:
        """A page of events, newest first, with their article attached."""
        limit = min(max(limit, 1), self.cfg.page_limit_max)
        offset = max(offset, 0)
        rows = await self.store.list_activity(limit=limit, offset=offset)
        items = []
        for row in rows:
            article = None
            if row["article_id"]:
                article = {
                    "id": row["article_id"],
                    "title": row["article_title"],
                    "link": row["article_link"],
                    "feedUrl": row["feed_url"],
                    "markdownPath": row["article_markdown_path"],
                }
            items.append(
                {
                    "id": row["id"],
                    "type": row["type"],
                    "articleId": row["article_id"],
                    "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
                    "payload": decode_payload(row["payload_json"]),
                    "article": article,
                }
            )
        return {"limit": limit, "offset": offset, "items": items}

    async def export_markdown(self, days: int = 7) -> str:
        """Render the last `days` days of activity as a Markdown review."""
        days = min(max(days, 1), self.cfg.export_max_days)
        now = self._clock()
        rows = await self.store.activity_since(now - timedelta(days=days), self.cfg.export_row_cap)
        table = []
        for row in rows:
            payload = decode_payload(row["payload_json"])
            created = row["created_at"]
            table.append(
                {
                    "time": created.isoformat() if created else "",
                    "type": row["type"],
                    "title": row["article_title"] or payload.get("title") or "",
                    "link": row["article_link"] or payload.get("url") or "",
                    "details": describe(row["type"], payload),
                }
            )
        return render_review(table, days=days, generated_at=now.isoformat())
