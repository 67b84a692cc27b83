"""Shared fixtures: a service wired to a fake network."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from feed_archive.config import AppConfig
from feed_archive.fetch.queue import FetchQueue
from feed_archive.service import ArchiveService

PUBLIC_ADDRESS = "93.184.216.34"


async def public_resolver(host: str) -> list[str]:
    return [PUBLIC_ADDRESS]


async def no_sleep(delay: float) -> None:
    return None


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_config(tmp_path: Path) -> AppConfig:
    cfg = AppConfig()
    cfg.storage.data_dir = str(tmp_path / "data")
    cfg.logging.console = False
    cfg.logging.file = False
    return cfg


@pytest.fixture
def build_service(tmp_path):
    """Factory for an ArchiveService whose HTTP goes to `handler`.

    Must be called inside the event loop that will use the service.
    """

    def factory(handler, cfg: AppConfig | None = None, clock=None, resolver=public_resolver):
        cfg = cfg or make_config(tmp_path)
        queue = FetchQueue(
            concurrency=cfg.queue.concurrency,
            interval_cap=1000,
            interval=1.0,
            retries=cfg.queue.retries,
            base_delay=0.0,
            sleep=no_sleep,
        )
        return ArchiveService.build(
            cfg,
            transport=httpx.MockTransport(handler),
            resolver=resolver,
            clock=clock,
            queue=queue,
        )

    return factory


@pytest.fixture
def fixed_clock():
    return FixedClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def app_config(tmp_path):
    return make_config(tmp_path)
