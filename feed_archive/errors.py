"""
Error taxonomy for the ingestion pipeline.

Every failure the pipeline raises on purpose is an ArchiveError subclass so
callers (the CLI, an HTTP router) can map it to a structured payload with
`error_payload` instead of inspecting messages.
"""

from __future__ import annotations

from typing import Any


class ArchiveError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(ArchiveError):
    """A URL was malformed or points at a blocked network. Never retried."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason


class FeedRejected(ValidationError):
    """A feed URL failed validation while being added to the feed set."""


class FetchError(ArchiveError):
    """A network fetch failed.

    Attributes:
        url: The URL that was requested
        status: HTTP status code, or None for network-level failures
    """

    def __init__(self, url: str, message: str, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status

    @staticmethod
    def from_status(url: str, status: int) -> "FetchError":
        """Build the right error class for an HTTP error status."""
        message = f"HTTP {status}"
        if status == 429 or 500 <= status <= 599:
            return TransientNetworkError(url, message, status)
        return PermanentHttpError(url, message, status)


class TransientNetworkError(FetchError):
    """Timeout, DNS or connection failure, 429 or 5xx."""


class PermanentHttpError(FetchError):
    """4xx other than 429, or a response that can never succeed (redirect loop, bad encoding)."""


class ParseError(ArchiveError):
    """Malformed feed, OPML or markup."""


class StorageError(ArchiveError):
    """A storage constraint was violated. Indicates a logic bug."""


def is_retryable(exc: BaseException) -> bool:
    """Return True if a failed attempt should be retried with backoff.

    Only fetch failures are retried: those without a status (network/DNS),
    429 and any 5xx. Permanent failures (4xx, redirect loops, unreadable
    responses), validation, parse and storage errors never are.
    """
    if isinstance(exc, TransientNetworkError):
        return True
    if isinstance(exc, PermanentHttpError):
        return False
    if isinstance(exc, FetchError):
        status = exc.status
        return status is None or status == 429 or 500 <= status <= 599
    return False


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Map an exception to the structured error payload returned to users."""
    reason = getattr(exc, "reason", None) or str(exc) or type(exc).__name__
    return {
        "ok": False,
        "error": reason,
        "kind": type(exc).__name__,
        "status": getattr(exc, "status", None),
        "url": getattr(exc, "url", None),
    }
