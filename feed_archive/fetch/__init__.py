"""
Outbound fetching.

This package handles URL validation, the shared rate-limited queue,
HTTP transport, caching, and plain-text extraction.
"""

from .validator import UrlValidator, Verdict, is_blocked_address
from .queue import FetchQueue
from .fetcher import FetchResult, HttpFetcher
from .cache import HttpCache, TtlCache
from .extractor import extract_text

__all__ = [
    "UrlValidator",
    "Verdict",
    "is_blocked_address",
    "FetchQueue",
    "FetchResult",
    "HttpFetcher",
    "HttpCache",
    "TtlCache",
    "extract_text",
]
