"""
The live feed set and multi-feed aggregation.

FeedReader owns the ordered list of subscriptions and the in-memory tier of
the cache. A feed read goes: TTL memo -> HttpCache (conditional GET, stale
fallback) -> parse -> persist items as Article rows -> decorate items with
their ids and read/favorite state.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timedelta, timezone
import logging

from ..config import AggregateConfig, ExtractConfig
from ..core.entry import item_key, stable_id
from ..core.types import ArticleRecord, CanonicalFeed, CanonicalItem, Subscription
from ..errors import FeedRejected, FetchError, ParseError, ValidationError
from ..fetch.cache import HttpCache, TtlCache
from ..fetch.validator import UrlValidator
from ..storage import ArchiveStore
from ..utils.logging import log_event, truncate_text
from .parser import load_subscription_list, parse_feed

logger = logging.getLogger(__name__)

DEFAULT_FEEDS = (
    Subscription(url="https://news.ycombinator.com/rss", name="Hacker News"),
    Subscription(url="https://www.reddit.com/r/programming/.rss", name="r/programming"),
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def sort_newest_first(items: list[CanonicalItem]) -> list[CanonicalItem]:
    """Sort by published_at descending; items without a timestamp go last.

    The sort is stable, so undated items keep their relative order.
    """
    return sorted(
        items,
        key=lambda item: (item.published_at is not None, item.published_at or _EPOCH),
        reverse=True,
    )


def date_window(day: date, window_days: int = 1) -> tuple[datetime, datetime]:
    """Return the inclusive UTC window [day 00:00:00.000, end of last day]."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=max(window_days, 1)) - timedelta(milliseconds=1)
    return start, end


def filter_by_date(items: list[CanonicalItem], day: date, window_days: int = 1) -> list[CanonicalItem]:
    """Keep items published inside the window; undated items are dropped."""
    start, end = date_window(day, window_days)
    kept = []
    for item in items:
        if item.published_at is None:
            continue
        published = item.published_at.astimezone(timezone.utc)
        if start <= published <= end:
            kept.append(item)
    return kept


class FeedReader:
    """Live feed set with cached, persisted feed reads.

    Args:
        validator: URL validator used when feeds are added
        http_cache: Persistent conditional cache in front of the queue
        store: Archive store for feeds, articles and state
        aggregate_cfg: Batch size and aggregation bounds
        extract_cfg: Snippet extraction chain
        memo: In-memory tier for parsed feeds
    """

    def __init__(
        self,
        validator: UrlValidator,
        http_cache: HttpCache,
        store: ArchiveStore,
        aggregate_cfg: AggregateConfig | None = None,
        extract_cfg: ExtractConfig | None = None,
        memo: TtlCache[str, CanonicalFeed] | None = None,
    ):
        self.validator = validator
        self.http_cache = http_cache
        self.store = store
        self.aggregate_cfg = aggregate_cfg or AggregateConfig()
        self.extract_cfg = extract_cfg or ExtractConfig()
        self.memo: TtlCache[str, CanonicalFeed] = memo or TtlCache(300.0)
        self.feeds: list[Subscription] = []

    async def load_stored(self) -> int:
        """Populate the live feed set from the feeds table."""
        stored = await self.store.list_feeds()
        known = {feed.url for feed in self.feeds}
        for sub in stored:
            if sub.url not in known:
                self.feeds.append(sub)
                known.add(sub.url)
        return len(self.feeds)

    async def add_feed(self, url: str, name: str | None = None) -> bool:
        """Validate and add a feed. Returns False if the URL was already present.

        Re-adding an existing URL updates its display name when one is given;
        without a name the existing one is kept.

        Raises:
            FeedRejected: The URL failed validation
        """
        await self.validator.ensure_valid(url, error_cls=FeedRejected)
        existing = next((sub for sub in self.feeds if sub.url == url), None)
        if existing is not None:
            existing.name = name or existing.name
            await self.store.upsert_feed(url, existing.name)
            return False
        display = name or url
        await self.store.upsert_feed(url, display)
        self.feeds.append(Subscription(url=url, name=display))
        log_event(logger, "Feed added", event="feed_added", url=url, feed_name=display)
        return True

    async def load_subscriptions(self, opml: bytes | str) -> int:
        """Add every OPML candidate in document order; returns how many were new.

        Candidates that fail validation are logged and skipped.
        """
        added = 0
        for candidate in load_subscription_list(opml):
            try:
                if await self.add_feed(candidate.url, candidate.name):
                    added += 1
            except FeedRejected as exc:
                log_event(
                    logger,
                    "Skipping rejected subscription",
                    level=logging.WARNING,
                    event="subscription_rejected",
                    url=candidate.url,
                    reason=exc.reason,
                )
        return added

    def clear(self) -> None:
        self.feeds.clear()
        self.memo.clear()

    def _feed_name(self, url: str) -> str | None:
        for sub in self.feeds:
            if sub.url == url:
                return sub.name
        return None

    async def fetch_feed(self, url: str) -> CanonicalFeed | None:
        """Return the parsed feed, or None on an unrecoverable fetch/parse failure.

        Raises:
            ValidationError: The URL is blocked
        """
        cached = self.memo.get_if_fresh(url)
        if cached is not None:
            await self._attach_state(cached.items)
            return cached

        try:
            response = await self.http_cache.fetch_cached(url, "feed")
        except FetchError as exc:
            log_event(
                logger,
                "Feed fetch failed",
                level=logging.WARNING,
                event="feed_fetch_failed",
                url=url,
                error=f"{type(exc).__name__}: {exc}",
                status_code=exc.status,
            )
            return None

        try:
            feed = parse_feed(response.body, self.extract_cfg)
        except ParseError as exc:
            log_event(
                logger,
                "Feed parse failed",
                level=logging.WARNING,
                event="feed_parse_failed",
                url=url,
                error=truncate_text(str(exc), 300),
            )
            return None

        await self._persist(url, feed)
        # A stale fallback is served but not memoized, so the next read retries.
        if response.error is None:
            self.memo.put(url, feed)
        await self._attach_state(feed.items)
        return feed

    async def _persist(self, url: str, feed: CanonicalFeed) -> None:
        feed_name = self._feed_name(url)
        await self.store.ensure_feed(url, feed_name or feed.title)
        for item in feed.items:
            article_id = stable_id(url, item_key(item.guid, item.link, item.title))
            item.article_id = article_id
            item.feed_url = url
            item.feed_title = feed.title
            item.feed_name = feed_name
            await self.store.upsert_article(
                ArticleRecord(
                    id=article_id,
                    feed_url=url,
                    title=item.title,
                    guid=item.guid,
                    link=item.link,
                    author=item.author,
                    published_at=item.published_at,
                    content_html=item.body_html,
                    content_snippet=item.snippet,
                )
            )

    async def _attach_state(self, items: list[CanonicalItem]) -> None:
        states = await self.store.get_states(item.article_id for item in items if item.article_id)
        for item in items:
            state = states.get(item.article_id or "")
            item.is_read = state.is_read if state else False
            item.is_favorite = state.is_favorite if state else False

    async def _fetch_for_aggregate(self, sub: Subscription) -> CanonicalFeed | None:
        try:
            return await self.fetch_feed(sub.url)
        except ValidationError as exc:
            log_event(
                logger,
                "Skipping blocked feed",
                level=logging.WARNING,
                event="feed_blocked",
                url=sub.url,
                reason=exc.reason,
            )
            return None

    async def get_all_articles(self, limit: int | None = None) -> list[CanonicalItem]:
        """Aggregate items across the live feed set, newest first.

        Feeds are fetched in parallel batches, one batch at a time. Collection
        stops after the batch that brings the total to limit * overfetch_factor
        and the merged list is cut to limit * result_factor.
        """
        cfg = self.aggregate_cfg
        limit = cfg.default_limit if limit is None else limit
        if limit <= 0:
            return []
        collected: list[CanonicalItem] = []
        feeds = list(self.feeds)
        batch_size = max(cfg.batch_size, 1)
        for start in range(0, len(feeds), batch_size):
            batch = feeds[start : start + batch_size]
            results = await asyncio.gather(*(self._fetch_for_aggregate(sub) for sub in batch))
            for sub, parsed in zip(batch, results):
                if parsed is None:
                    continue
                for item in parsed.items:
                    item.feed_name = sub.name
                    collected.append(item)
            if len(collected) >= limit * cfg.overfetch_factor:
                break
        return sort_newest_first(collected)[: limit * cfg.result_factor]

    async def get_articles_by_date(self, day: date, window_days: int = 1) -> list[CanonicalItem]:
        pool = await self.get_all_articles(self.aggregate_cfg.date_pool_limit)
        return filter_by_date(pool, day, window_days)
