"""
Persistence for feeds, the fetch cache, articles, state, notes and activity.

All writes are single-statement upserts or inserts with last-writer-wins
semantics. Constraint violations surface as StorageError and are never
retried.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any, AsyncIterator, Iterable

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..core.types import ArticleRecord, ArticleStateView, CacheEntry, Subscription
from ..errors import StorageError
from .db import create_engine, sqlite_url
from .models import (
    ActivityEvent,
    Article,
    ArticleNote,
    ArticleState,
    Base,
    Feed,
    FetchCacheEntry,
    utc_now,
)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ArchiveStore:
    """Async repository over the archive database.

    Args:
        engine: SQLAlchemy async engine
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    @classmethod
    def open(cls, db_path: Path) -> "ArchiveStore":
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(create_engine(sqlite_url(db_path)))

    async def init(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise StorageError(f"Constraint violation: {exc.orig}") from exc

    # Feeds

    async def upsert_feed(self, url: str, name: str | None) -> bool:
        """Insert a feed or update its name. Returns True if it was created."""
        async with self._session() as session:
            existing = await session.scalar(select(Feed.id).where(Feed.url == url))
            stmt = sqlite_insert(Feed).values(url=url, name=name, created_at=utc_now())
            stmt = stmt.on_conflict_do_update(
                index_elements=[Feed.url],
                set_={"name": func.coalesce(stmt.excluded.name, Feed.name)},
            )
            await session.execute(stmt)
            return existing is None

    async def ensure_feed(self, url: str, name: str | None) -> None:
        async with self._session() as session:
            stmt = sqlite_insert(Feed).values(url=url, name=name, created_at=utc_now())
            await session.execute(stmt.on_conflict_do_nothing(index_elements=[Feed.url]))

    async def list_feeds(self) -> list[Subscription]:
        async with self._session() as session:
            rows = await session.execute(select(Feed.url, Feed.name).order_by(Feed.id))
            return [Subscription(url=url, name=name or url) for url, name in rows]

    # Fetch cache

    async def get_cache_entry(self, url: str) -> CacheEntry | None:
        async with self._session() as session:
            row = await session.get(FetchCacheEntry, url)
            if row is None:
                return None
            return CacheEntry(
                url=row.url,
                kind=row.kind,
                status=row.status,
                body=row.body,
                content_type=row.content_type,
                etag=row.etag,
                last_modified=row.last_modified,
                fetched_at=as_utc(row.fetched_at),
            )

    async def put_cache_entry(self, entry: CacheEntry) -> None:
        values = {
            "url": entry.url,
            "kind": entry.kind,
            "status": entry.status,
            "content_type": entry.content_type,
            "etag": entry.etag,
            "last_modified": entry.last_modified,
            "fetched_at": entry.fetched_at or utc_now(),
            "body": entry.body,
        }
        async with self._session() as session:
            stmt = sqlite_insert(FetchCacheEntry).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[FetchCacheEntry.url],
                set_={key: stmt.excluded[key] for key in values if key != "url"},
            )
            await session.execute(stmt)

    # Articles

    async def upsert_article(self, record: ArticleRecord) -> None:
        """Insert or merge an article row.

        Non-null incoming values replace stored ones; nulls never erase
        stored values, so markdown_path set by materialization survives
        metadata-only upserts from feed parsing.
        """
        now = utc_now()
        async with self._session() as session:
            stmt = sqlite_insert(Article).values(
                id=record.id,
                feed_url=record.feed_url,
                guid=record.guid,
                link=record.link,
                title=record.title,
                author=record.author,
                published_at=record.published_at,
                content_html=record.content_html,
                content_snippet=record.content_snippet,
                markdown_path=record.markdown_path,
                created_at=now,
                updated_at=now,
            )
            merged = ("guid", "link", "title", "author", "published_at",
                      "content_html", "content_snippet", "markdown_path")
            set_: dict[str, Any] = {
                name: func.coalesce(stmt.excluded[name], getattr(Article, name)) for name in merged
            }
            set_["updated_at"] = stmt.excluded.updated_at
            await session.execute(stmt.on_conflict_do_update(index_elements=[Article.id], set_=set_))

    async def get_article(self, article_id: str) -> ArticleRecord | None:
        async with self._session() as session:
            row = await session.get(Article, article_id)
            if row is None:
                return None
            return ArticleRecord(
                id=row.id,
                feed_url=row.feed_url,
                title=row.title,
                guid=row.guid,
                link=row.link,
                author=row.author,
                published_at=as_utc(row.published_at),
                content_html=row.content_html,
                content_snippet=row.content_snippet,
                markdown_path=row.markdown_path,
            )

    # State

    async def get_state(self, article_id: str) -> ArticleStateView | None:
        async with self._session() as session:
            row = await session.get(ArticleState, article_id)
            if row is None:
                return None
            return ArticleStateView(article_id, bool(row.is_read), bool(row.is_favorite))

    async def get_states(self, article_ids: Iterable[str]) -> dict[str, ArticleStateView]:
        ids = list(article_ids)
        if not ids:
            return {}
        async with self._session() as session:
            rows = await session.execute(select(ArticleState).where(ArticleState.article_id.in_(ids)))
            return {
                row.article_id: ArticleStateView(row.article_id, bool(row.is_read), bool(row.is_favorite))
                for row in rows.scalars()
            }

    async def set_state(self, article_id: str, is_read: bool, is_favorite: bool) -> None:
        async with self._session() as session:
            stmt = sqlite_insert(ArticleState).values(
                article_id=article_id,
                is_read=is_read,
                is_favorite=is_favorite,
                updated_at=utc_now(),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[ArticleState.article_id],
                set_={
                    "is_read": stmt.excluded.is_read,
                    "is_favorite": stmt.excluded.is_favorite,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await session.execute(stmt)

    # Notes

    async def add_note(self, article_id: str, note_path: str) -> int:
        async with self._session() as session:
            note = ArticleNote(article_id=article_id, note_path=note_path, created_at=utc_now())
            session.add(note)
            await session.flush()
            return note.id

    async def list_notes(self, article_id: str) -> list[dict[str, Any]]:
        async with self._session() as session:
            rows = await session.execute(
                select(ArticleNote)
                .where(ArticleNote.article_id == article_id)
                .order_by(ArticleNote.id.desc())
            )
            return [
                {"id": note.id, "notePath": note.note_path, "createdAt": as_utc(note.created_at)}
                for note in rows.scalars()
            ]

    # Activity

    async def append_activity(
        self,
        type_: str,
        article_id: str | None,
        payload: dict[str, Any] | None,
        created_at: datetime | None = None,
    ) -> int:
        async with self._session() as session:
            event = ActivityEvent(
                type=type_,
                article_id=article_id,
                payload_json=json.dumps(payload, ensure_ascii=False) if payload is not None else None,
                created_at=created_at or utc_now(),
            )
            session.add(event)
            await session.flush()
            return event.id

    async def list_activity(
        self,
        limit: int,
        offset: int = 0,
        since: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Activity rows joined with their article, newest first."""
        query = (
            select(
                ActivityEvent.id,
                ActivityEvent.type,
                ActivityEvent.article_id,
                ActivityEvent.payload_json,
                ActivityEvent.created_at,
                Article.title,
                Article.link,
                Article.feed_url,
                Article.markdown_path,
            )
            .outerjoin(Article, Article.id == ActivityEvent.article_id)
            .order_by(ActivityEvent.created_at.desc(), ActivityEvent.id.desc())
            .limit(limit)
            .offset(offset)
        )
        if since is not None:
            query = query.where(ActivityEvent.created_at >= since)
        async with self._session() as session:
            rows = await session.execute(query)
            return [
                {
                    "id": row.id,
                    "type": row.type,
                    "article_id": row.article_id,
                    "payload_json": row.payload_json,
                    "created_at": as_utc(row.created_at),
                    "article_title": row.title,
                    "article_link": row.link,
                    "feed_url": row.feed_url,
                    "article_markdown_path": row.markdown_path,
                }
                for row in rows
            ]

    async def activity_since(self, since: datetime, cap: int) -> list[dict[str, Any]]:
        """Events created at or after `since`, newest first, at most `cap` rows."""
        return await self.list_activity(limit=cap, offset=0, since=since)
