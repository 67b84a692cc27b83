"""
Feed Archive - content ingestion and archival pipeline.

This package fetches RSS/Atom feeds and article pages through a single
rate-limited, SSRF-guarded fetch queue, caches responses with conditional
GET semantics, normalizes feed items into canonical records and turns
articles into self-contained Markdown documents with localized images.

Main entry point is the CLI via the `feed-archive` command.

Example:
    $ feed-archive import-opml subscriptions.opml
    $ feed-archive all --limit 20
"""

__all__ = ["__version__", "stable_id", "slugify", "short_hash", "ArchiveService"]
__version__ = "0.1.0"

from .core.entry import short_hash, slugify, stable_id
from .service import ArchiveService
