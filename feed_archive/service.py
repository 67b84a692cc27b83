"""
The service object that wires the pipeline together.

One ArchiveService is built per process. It owns the single FetchQueue,
the validator, both cache tiers, the store and the background pool, and
hands them to every component that needs them. Tests build one with a
fake transport, resolver and clocks through `ArchiveService.build`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime
import logging
from typing import Any, AsyncIterator, Callable

import httpx

from .activity import ActivityLog
from .config import AppConfig
from .core.types import ArticleStateView, CanonicalFeed, CanonicalItem, MaterializedArticle
from .feeds.reader import DEFAULT_FEEDS, FeedReader
from .fetch.cache import HttpCache, TtlCache
from .fetch.fetcher import HttpFetcher
from .fetch.queue import FetchQueue
from .fetch.validator import Resolver, UrlValidator
from .materialize.collector import ResourceCollector
from .materialize.materializer import ArticleMaterializer
from .state import ArticleStateService
from .storage import ArchiveStore, create_engine
from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)


class ArchiveService:
    """Facade over the ingestion pipeline.

    Build it with `ArchiveService.open(cfg)` (an async context manager that
    initializes and closes the store), or with `build` when the caller
    manages the lifecycle.
    """

    def __init__(
        self,
        cfg: AppConfig,
        store: ArchiveStore,
        validator: UrlValidator,
        queue: FetchQueue,
        fetcher: HttpFetcher,
        http_cache: HttpCache,
        reader: FeedReader,
        collector: ResourceCollector,
        activity: ActivityLog,
        state: ArticleStateService,
        materializer: ArticleMaterializer,
        tasks: BackgroundTasks,
    ):
        self.cfg = cfg
        self.store = store
        self.validator = validator
        self.queue = queue
        self.fetcher = fetcher
        self.http_cache = http_cache
        self.reader = reader
        self.collector = collector
        self.activity = activity
        self.state = state
        self.materializer = materializer
        self.tasks = tasks

    @classmethod
    def build(
        cls,
        cfg: AppConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        resolver: Resolver | None = None,
        clock: Callable[[], datetime] | None = None,
        queue: FetchQueue | None = None,
        store: ArchiveStore | None = None,
    ) -> "ArchiveService":
        storage_cfg = cfg.storage
        if store is None:
            storage_cfg.database_path.parent.mkdir(parents=True, exist_ok=True)
            store = ArchiveStore(create_engine(storage_cfg.database_url))
        validator = UrlValidator(cfg.security.allow_private_networks, resolver=resolver)
        queue = queue or FetchQueue.from_config(cfg.queue)
        fetcher = HttpFetcher.from_config(cfg.fetch, queue, validator, transport=transport)
        http_cache = HttpCache(fetcher, store, clock=clock)
        reader = FeedReader(
            validator,
            http_cache,
            store,
            aggregate_cfg=cfg.aggregate,
            extract_cfg=cfg.extract,
            memo=TtlCache(cfg.cache.feed_ttl_seconds),
        )
        tasks = BackgroundTasks()
        activity = ActivityLog(store, cfg.activity, clock=clock)
        collector = ResourceCollector(fetcher, user_agent=cfg.materialize.user_agent)
        state = ArticleStateService(
            store, activity, collector, tasks, storage_cfg.notes_path, clock=clock
        )
        materializer = ArticleMaterializer(
            http_cache,
            store,
            activity,
            state,
            storage_cfg.articles_path,
            cfg=cfg.materialize,
            clock=clock,
        )
        return cls(
            cfg,
            store,
            validator,
            queue,
            fetcher,
            http_cache,
            reader,
            collector,
            activity,
            state,
            materializer,
            tasks,
        )

    @classmethod
    @asynccontextmanager
    async def open(cls, cfg: AppConfig, **overrides: Any) -> AsyncIterator["ArchiveService"]:
        service = cls.build(cfg, **overrides)
        await service.start()
        try:
            yield service
        finally:
            await service.close()

    async def start(self) -> None:
        await self.store.init()
        await self.reader.load_stored()

    async def close(self, wait: bool = True) -> None:
        """Drain (or cancel) background work and dispose of the engine."""
        if wait:
            await self.tasks.join()
        else:
            await self.tasks.cancel_all()
        await self.store.close()

    async def ensure_default_feeds(self) -> int:
        """Add the default feeds when the live feed set is empty."""
        if self.reader.feeds:
            return 0
        added = 0
        for sub in DEFAULT_FEEDS:
            if await self.reader.add_feed(sub.url, sub.name):
                added += 1
        return added

    async def add_feed(self, url: str, name: str | None = None) -> bool:
        return await self.reader.add_feed(url, name)

    async def load_subscriptions(self, opml: bytes | str) -> int:
        return await self.reader.load_subscriptions(opml)

    async def fetch_feed(self, url: str) -> CanonicalFeed | None:
        return await self.reader.fetch_feed(url)

    async def get_all_articles(self, limit: int | None = None) -> list[CanonicalItem]:
        return await self.reader.get_all_articles(limit)

    async def get_articles_by_date(self, day: date, window_days: int = 1) -> list[CanonicalItem]:
        return await self.reader.get_articles_by_date(day, window_days)

    async def materialize_article(
        self,
        url: str,
        feed_url: str | None = None,
        title: str | None = None,
        published_at: datetime | None = None,
        html: str | bytes | None = None,
    ) -> MaterializedArticle:
        return await self.materializer.materialize_article(
            url, feed_url=feed_url, title=title, published_at=published_at, html=html
        )

    async def set_article_state(
        self,
        article_id: str,
        is_read: bool | None = None,
        is_favorite: bool | None = None,
    ) -> ArticleStateView:
        return await self.state.set_article_state(article_id, is_read, is_favorite)

    async def add_note(self, article_id: str, title: str | None, content: str | None) -> dict[str, Any]:
        return await self.state.add_note(article_id, title, content)

    async def list_notes(self, article_id: str) -> dict[str, Any]:
        return await self.state.list_notes(article_id)

    async def list_activity(self, limit: int = 50, offset: int = 0) -> dict[str, Any]:
        return await self.activity.list(limit, offset)

    async def export_markdown(self, days: int = 7) -> str:
        return await self.activity.export_markdown(days)
