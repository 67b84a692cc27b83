"""Stable identifiers and file naming for archived articles.

Article ids are a SHA-256 digest of the feed URL and the item key, so the
same feed item always maps to the same row. File names combine a readable
slug with a short hash of the source URL so distinct articles never collide.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime
from pathlib import Path


def stable_id(feed_url: str, key: str | None) -> str:
    """Derive the article id from a feed URL and its guid/link/title key.

    Args:
        feed_url: URL of the feed the item came from
        key: guid, else link, else title of the item

    Returns:
        64-character hexadecimal SHA-256 digest
    """
    payload = f"{feed_url}::{key or ''}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def item_key(guid: str | None, link: str | None, title: str | None) -> str | None:
    """Pick the identity key of a feed item: guid, then link, then title."""
    return guid or link or title


def slugify(text: str) -> str:
    """Convert text to URL-safe slug.

    Args:
        text: The text to slugify

    Returns:
        A lowercase, hyphenated slug limited to 50 characters
    """
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    if not slug:
        slug = "untitled"
    return slug[:50].rstrip("-") or "untitled"


def short_hash(url: str, length: int = 8) -> str:
    """Return the first `length` characters of the MD5 hash of a URL."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:length]


def safe_file_name(name: str) -> str:
    """Sanitize free text (e.g. image alt text) into a file-name fragment."""
    cleaned = name.strip().lower()
    cleaned = re.sub(r"\s+", "-", cleaned)
    cleaned = re.sub(r"[^a-z0-9\-._]", "", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned)
    return cleaned[:120] or "untitled"


def dated_dir(base_dir: Path, now: datetime) -> Path:
    """Return base_dir/YYYY/MM for `now`, the layout used for articles and notes."""
    return base_dir / f"{now.year:04d}" / f"{now.month:02d}"
