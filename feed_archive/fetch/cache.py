"""
Two-tier HTTP caching.

- HttpCache: persistent, validator-based. Every fetch sends the stored
  ETag / Last-Modified; a 304 serves the stored body, a fresh 200 replaces
  the entry, and any fetch failure falls back to the stored body when one
  exists. The store is written only after a usable response.
- TtlCache: short-lived, time-based, in-memory. Holds fully parsed results
  (not raw bytes) so bursts of refreshes never reach the queue.

The two tiers are independent: TtlCache entries expire by age, HttpCache
entries never expire and are revalidated by the origin.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import time
from typing import Callable, Generic, Protocol, TypeVar

from ..core.types import CacheEntry, CachedResponse
from ..errors import FetchError
from ..utils.logging import log_event
from .fetcher import HttpFetcher

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class CacheStore(Protocol):
    async def get_cache_entry(self, url: str) -> CacheEntry | None: ...

    async def put_cache_entry(self, entry: CacheEntry) -> None: ...


class HttpCache:
    """Persistent conditional-GET cache in front of the fetcher.

    Args:
        fetcher: Queued, validated fetcher
        store: Persistence for CacheEntry rows
        clock: Returns the current UTC datetime
    """

    def __init__(
        self,
        fetcher: HttpFetcher,
        store: CacheStore,
        clock: Callable[[], datetime] | None = None,
    ):
        self.fetcher = fetcher
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def fetch_cached(self, url: str, kind: str) -> CachedResponse:
        """Fetch url, using and updating the persistent cache.

        Args:
            url: Resource to fetch
            kind: "feed" or "article"

        Returns:
            CachedResponse; from_cache is True for a 304 hit or a stale
            fallback (in which case error carries the refresh failure)

        Raises:
            ValidationError: The URL is blocked; never served from cache
            FetchError: The fetch failed and nothing was cached for url
        """
        prior = await self.store.get_cache_entry(url)
        headers: dict[str, str] = {}
        if prior is not None:
            if prior.etag:
                headers["If-None-Match"] = prior.etag
            if prior.last_modified:
                headers["If-Modified-Since"] = prior.last_modified

        try:
            result = await self.fetcher.fetch(url, headers=headers)
        except FetchError as exc:
            if prior is None:
                raise
            log_event(
                logger,
                "Serving stale cache entry",
                level=logging.WARNING,
                event="cache_stale_fallback",
                url=url,
                kind=kind,
                error=f"{type(exc).__name__}: {exc}",
                status_code=exc.status,
            )
            return _from_entry(prior, error=exc)

        if result.not_modified:
            if prior is None:
                raise FetchError(url, "Not modified, but nothing is cached", status=304)
            log_event(logger, "Cache revalidated", level=logging.DEBUG, event="cache_not_modified", url=url)
            return _from_entry(prior)

        entry = CacheEntry(
            url=url,
            kind=kind,
            status=result.status_code,
            body=result.content,
            content_type=result.content_type,
            etag=result.etag,
            last_modified=result.last_modified,
            fetched_at=self._clock(),
        )
        await self.store.put_cache_entry(entry)
        return CachedResponse(
            url=url,
            status=result.status_code,
            body=result.content,
            content_type=result.content_type,
            from_cache=False,
        )


def _from_entry(entry: CacheEntry, error: Exception | None = None) -> CachedResponse:
    return CachedResponse(
        url=entry.url,
        status=entry.status,
        body=entry.body,
        content_type=entry.content_type,
        from_cache=True,
        error=error,
    )


class TtlCache(Generic[K, V]):
    """In-memory cache whose entries expire a fixed time after insertion."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[K, tuple[float, V]] = {}

    def get_if_fresh(self, key: K) -> V | None:
        hit = self._entries.get(key)
        if hit is None:
            return None
        inserted_at, value = hit
        if self._clock() - inserted_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def put(self, key: K, value: V) -> None:
        self._entries[key] = (self._clock(), value)

    def invalidate(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
