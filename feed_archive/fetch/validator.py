"""
URL validation against server-side request forgery.

Feed and article URLs come from OPML files and user input, so every fetch
target is checked before it reaches the queue: only http/https URLs with a
host are accepted, and unless the operator override is on, the host is
resolved and rejected if any resolved address is private, loopback,
link-local or unspecified. A resolution failure is a rejection.

Verdicts are never cached; DNS answers can change between calls.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import ipaddress
import logging
import socket
from typing import Awaitable, Callable, Iterable
from urllib.parse import urlsplit

from ..errors import ValidationError
from ..utils.logging import log_event

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::1/128",
        "fe80::/10",
        "fc00::/7",
    )
)

Resolver = Callable[[str], Awaitable[Iterable[str]]]


@dataclass(frozen=True)
class Verdict:
    """Outcome of validating one URL."""

    ok: bool
    reason: str | None = None


async def resolve_host(host: str) -> list[str]:
    """Resolve a hostname to its IP address strings via the event loop."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def is_blocked_address(address: str) -> bool:
    """Return True if an IP address falls in a blocked range."""
    ip = ipaddress.ip_address(address.split("%", 1)[0])
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in BLOCKED_NETWORKS)


def _literal_address(host: str) -> list[str] | None:
    """The host itself when it is an IP literal; such hosts skip DNS."""
    try:
        return [str(ipaddress.ip_address(host))]
    except ValueError:
        return None


class UrlValidator:
    """Classifies candidate URLs as fetchable or blocked.

    Args:
        allow_private_networks: Operator override; skips the DNS check
        resolver: Async callable mapping a hostname to address strings
    """

    def __init__(
        self,
        allow_private_networks: bool = False,
        resolver: Resolver | None = None,
    ):
        self.allow_private_networks = allow_private_networks
        self._resolver = resolver or resolve_host

    async def validate(self, url: str) -> Verdict:
        try:
            parts = urlsplit(url)
            host = parts.hostname
        except ValueError:
            return Verdict(False, "Malformed URL")

        if parts.scheme.lower() not in ALLOWED_SCHEMES:
            return Verdict(False, f"Unsupported scheme '{parts.scheme}'")
        if not host:
            return Verdict(False, "Missing host")

        if self.allow_private_networks:
            return Verdict(True)

        addresses = _literal_address(host)
        if addresses is None:
            try:
                addresses = list(await self._resolver(host))
            except (OSError, UnicodeError) as exc:
                return Verdict(False, f"DNS resolution failed: {exc}")
        if not addresses:
            return Verdict(False, "DNS resolution returned no addresses")

        for address in addresses:
            try:
                blocked = is_blocked_address(address)
            except ValueError:
                return Verdict(False, f"Unparseable address {address}")
            if blocked:
                return Verdict(False, f"Host resolves to blocked address {address}")
        return Verdict(True)

    async def ensure_valid(
        self,
        url: str,
        error_cls: type[ValidationError] = ValidationError,
    ) -> None:
        """Validate url and raise error_cls if it is rejected."""
        verdict = await self.validate(url)
        if not verdict.ok:
            log_event(
                logger,
                "URL rejected",
                level=logging.WARNING,
                event="url_rejected",
                url=url,
                reason=verdict.reason,
            )
            raise error_cls(url, verdict.reason or "Rejected")
