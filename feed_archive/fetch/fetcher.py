"""
HTTP fetching through the shared queue.

Every outbound request goes through `HttpFetcher.fetch`, which validates the
URL first and only then submits the request to the FetchQueue. Each queue
attempt opens an httpx AsyncClient and follows redirects itself, validating
every Location before requesting it, so a public host cannot bounce the
fetch onto a private address. Failures are mapped onto the error taxonomy
so the queue can decide whether to retry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from urllib.parse import urljoin

import httpx

from ..config import FetchConfig
from ..errors import FetchError, PermanentHttpError, TransientNetworkError
from ..utils.logging import log_event
from .queue import FetchQueue
from .validator import UrlValidator

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Result of an HTTP fetch operation.

    A 304 response is reported with not_modified=True and an empty body;
    error statuses are raised, never returned.

    Attributes:
        url: The URL that was fetched
        status_code: HTTP status code
        content: The response body
        headers: Response headers (lower-cased names)
        not_modified: True for a 304 reply to a conditional request
    """

    url: str
    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    not_modified: bool = False

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def etag(self) -> str | None:
        return self.headers.get("etag")

    @property
    def last_modified(self) -> str | None:
        return self.headers.get("last-modified")


class HttpFetcher:
    """Validated, queued HTTP GET.

    Args:
        queue: The process-wide FetchQueue
        validator: URL validator run before queueing
        timeout: Request timeout in seconds
        user_agent: Default User-Agent header
        trust_env: Whether to respect system proxy settings
        max_redirects: Redirect hops followed before giving up
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        queue: FetchQueue,
        validator: UrlValidator,
        timeout: float = 20.0,
        user_agent: str = "feed-archive",
        trust_env: bool = True,
        max_redirects: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.queue = queue
        self.validator = validator
        self.timeout = timeout
        self.user_agent = user_agent
        self.trust_env = trust_env
        self.max_redirects = max_redirects
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        cfg: FetchConfig,
        queue: FetchQueue,
        validator: UrlValidator,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpFetcher":
        return cls(
            queue,
            validator,
            timeout=cfg.timeout_seconds,
            user_agent=cfg.user_agent,
            trust_env=cfg.trust_env,
            max_redirects=cfg.max_redirects,
            transport=transport,
        )

    async def fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchResult:
        """Validate url, then GET it through the queue.

        Redirects are followed by hand, at most `max_redirects` hops, and
        every Location is validated before it is requested.

        Raises:
            ValidationError: The URL or a redirect target is malformed or blocked
            TransientNetworkError: Network failure, 429 or 5xx after retries
            PermanentHttpError: Any other 4xx, a redirect loop or an unreadable response
        """
        await self.validator.ensure_valid(url)
        request_headers = {"User-Agent": self.user_agent}
        request_headers.update(headers or {})

        async def attempt() -> FetchResult:
            return await self._get(url, request_headers)

        return await self.queue.enqueue(attempt, label=url)

    async def _get(self, url: str, headers: dict[str, str]) -> FetchResult:
        current = url
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=headers,
                follow_redirects=False,
                trust_env=self.trust_env,
                transport=self._transport,
            ) as client:
                for _ in range(self.max_redirects + 1):
                    resp = await client.get(current)
                    if not resp.is_redirect:
                        break
                    target = urljoin(current, resp.headers["location"])
                    await self.validator.ensure_valid(target)
                    log_event(
                        logger,
                        "Following redirect",
                        level=logging.DEBUG,
                        event="fetch_redirect",
                        url=current,
                        location=target,
                        status_code=resp.status_code,
                    )
                    current = target
                else:
                    raise PermanentHttpError(url, f"More than {self.max_redirects} redirects")
        except httpx.TransportError as exc:
            raise TransientNetworkError(url, f"{type(exc).__name__}: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise PermanentHttpError(url, f"{type(exc).__name__}: {exc}") from exc

        response_headers = {key.lower(): value for key, value in resp.headers.items()}
        if resp.status_code == 304:
            return FetchResult(url=current, status_code=304, headers=response_headers, not_modified=True)
        if resp.status_code >= 400:
            raise FetchError.from_status(url, resp.status_code)
        return FetchResult(
            url=current,
            status_code=resp.status_code,
            content=resp.content,
            headers=response_headers,
        )
