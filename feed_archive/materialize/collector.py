"""
Resource localization for materialized documents.

A separate pass over an already-written Markdown document: every image
reference is resolved (relative references against the document's `url`
front-matter field), downloaded once per distinct URL through the shared
fetcher into `<stem>-assets/`, and rewritten to the local relative path.

The pass is idempotent. Asset file names carry a hash of the resolved URL,
so a rerun reuses files that already exist, and references already pointing
into the assets directory are left alone. A failed download is logged and
leaves its reference untouched.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
import re
from urllib.parse import urljoin, urlsplit

from ..core.entry import safe_file_name
from ..core.types import LocalizationResult
from ..errors import ArchiveError
from ..fetch.fetcher import HttpFetcher
from ..utils.logging import log_event
from .frontmatter import parse_front_matter
from .markdown import link_destination

logger = logging.getLogger(__name__)

IMAGE_RE = re.compile(
    r"!\[([^\]]*)\]\("
    r"(?:<([^<>\n]+)>|((?:[^()\s<>]|\([^()\s<>]*\))+))"
    r'(\s+"[^"]*")?\)'
)

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}

_PATH_EXT_RE = re.compile(r"\.([a-z0-9]+)$", re.IGNORECASE)


def assets_dir_for(markdown_path: Path) -> Path:
    return markdown_path.with_name(f"{markdown_path.stem}-assets")


def url_digest(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:8]


def pick_extension(content_type: str | None, url: str) -> str:
    """Extension from the content type, else from the URL path, else empty."""
    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime in CONTENT_TYPE_EXTENSIONS:
            return CONTENT_TYPE_EXTENSIONS[mime]
    match = _PATH_EXT_RE.search(urlsplit(url).path)
    return f".{match.group(1).lower()}" if match else ""


def resolve_reference(raw: str, source_url: str | None) -> str | None:
    """Absolute http(s) URL for a reference, or None if it cannot be fetched."""
    scheme = urlsplit(raw).scheme.lower()
    if scheme in ("http", "https"):
        return raw
    if scheme:
        # data:, mailto:, file: and friends are never fetched
        return None
    if not source_url:
        return None
    resolved = urljoin(source_url, raw)
    return resolved if urlsplit(resolved).scheme in ("http", "https") else None


def _existing_asset(assets_dir: Path, digest: str) -> Path | None:
    if not assets_dir.is_dir():
        return None
    for path in sorted(assets_dir.glob(f"*-{digest}*")):
        if path.is_file() and path.stem.endswith(f"-{digest}"):
            return path
    return None


class ResourceCollector:
    """Downloads and rewrites image references in Markdown documents.

    Args:
        fetcher: Validated, queued fetcher shared with the rest of the pipeline
        user_agent: User-Agent for resource downloads
    """

    def __init__(self, fetcher: HttpFetcher, user_agent: str | None = None):
        self.fetcher = fetcher
        self.user_agent = user_agent

    async def download_resources(self, markdown_path: Path) -> LocalizationResult:
        """Localize the images of a persisted document in place."""
        markdown_path = Path(markdown_path)
        if not markdown_path.is_file():
            log_event(
                logger,
                "Markdown file not found",
                level=logging.WARNING,
                event="localize_missing_document",
                path=str(markdown_path),
            )
            return LocalizationResult()

        document = markdown_path.read_text(encoding="utf-8")
        fields, _ = parse_front_matter(document)
        source_url = fields.get("url") if isinstance(fields.get("url"), str) else None

        updated, result = await self.localize(document, source_url, assets_dir_for(markdown_path))
        if result.updated:
            markdown_path.write_text(updated, encoding="utf-8")
            log_event(
                logger,
                "Document localized",
                event="localize_done",
                path=str(markdown_path),
                downloaded=result.downloaded,
                reused=result.reused,
                failed=result.failed,
            )
        return result

    async def localize(
        self,
        document: str,
        source_url: str | None,
        assets_dir: Path,
    ) -> tuple[str, LocalizationResult]:
        """Return the rewritten document and pass counters."""
        result = LocalizationResult()
        prefix = f"{assets_dir.name}/"
        local_paths: dict[str, str] = {}
        failed: set[str] = set()
        rewrites: dict[str, str] = {}

        for match in IMAGE_RE.finditer(document):
            alt, raw = match.group(1), match.group(2) or match.group(3)
            if raw in rewrites or raw.startswith(prefix):
                continue
            resolved = resolve_reference(raw, source_url)
            if resolved is None:
                result.skipped += 1
                log_event(
                    logger,
                    "Skipping unresolvable resource",
                    level=logging.DEBUG,
                    event="resource_skipped",
                    reference=raw[:120],
                )
                continue
            if resolved in failed:
                continue
            if resolved not in local_paths:
                filename = await self._obtain(resolved, alt, assets_dir, result)
                if filename is None:
                    failed.add(resolved)
                    continue
                local_paths[resolved] = f"{prefix}{filename}"
            rewrites[raw] = local_paths[resolved]

        def rewrite(match: re.Match) -> str:
            local = rewrites.get(match.group(2) or match.group(3))
            if local is None:
                return match.group(0)
            return f"![{match.group(1)}]({link_destination(local)}{match.group(4) or ''})"

        updated = IMAGE_RE.sub(rewrite, document)
        result.updated = updated != document
        return updated, result

    async def _obtain(
        self,
        url: str,
        alt: str,
        assets_dir: Path,
        result: LocalizationResult,
    ) -> str | None:
        digest = url_digest(url)
        existing = _existing_asset(assets_dir, digest)
        if existing is not None:
            result.reused += 1
            return existing.name

        headers = {"User-Agent": self.user_agent} if self.user_agent else None
        try:
            fetched = await self.fetcher.fetch(url, headers=headers)
            filename = f"{safe_file_name(alt or 'image')}-{digest}{pick_extension(fetched.content_type, url)}"
            assets_dir.mkdir(parents=True, exist_ok=True)
            (assets_dir / filename).write_bytes(fetched.content)
        except (ArchiveError, OSError) as exc:
            result.failed += 1
            log_event(
                logger,
                "Resource download failed",
                level=logging.WARNING,
                event="resource_failed",
                url=url,
                error=f"{type(exc).__name__}: {exc}",
            )
            return None

        result.downloaded += 1
        log_event(
            logger,
            "Resource downloaded",
            level=logging.DEBUG,
            event="resource_downloaded",
            url=url,
            path=str(assets_dir / filename),
        )
        return filename
