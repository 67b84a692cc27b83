"""
Core domain models and naming helpers.

This package contains data types and identity logic that is
independent of any specific pipeline stage.
"""

from .types import (
    ArticleRecord,
    ArticleStateView,
    CacheEntry,
    CachedResponse,
    CanonicalFeed,
    CanonicalItem,
    LocalizationResult,
    MaterializedArticle,
    Subscription,
)
from .entry import dated_dir, item_key, safe_file_name, short_hash, slugify, stable_id

__all__ = [
    "ArticleRecord",
    "ArticleStateView",
    "CacheEntry",
    "CachedResponse",
    "CanonicalFeed",
    "CanonicalItem",
    "LocalizationResult",
    "MaterializedArticle",
    "Subscription",
    "dated_dir",
    "item_key",
    "safe_file_name",
    "short_hash",
    "slugify",
    "stable_id",
]
