"""Tests for the activity timeline and the Markdown review export."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import httpx

from feed_archive.activity import ActivityLog, ActivityType, decode_payload, describe
from feed_archive.config import ActivityConfig
from feed_archive.core.entry import stable_id
from feed_archive.core.types import ArticleRecord
from feed_archive.output.renderer import md_cell, render_review
from feed_archive.storage import ArchiveStore

NOW = datetime(2024, 8, 20, 9, 0, tzinfo=timezone.utc)
FEED = "https://example.com/rss"


def test_md_cell_escapes_table_breakers():
    assert md_cell("a|b") == "a\\|b"
    assert md_cell("line\nbreak\r\nagain") == "line break again"
    assert md_cell(None) == ""


def test_decode_payload_tolerates_garbage():
    assert decode_payload('{"isRead": true}') == {"isRead": True}
    assert decode_payload("not json") == {}
    assert decode_payload("[1, 2]") == {}
    assert decode_payload(None) == {}


def test_describe_each_type():
    assert describe("state", {"isRead": True, "isFavorite": False}) == "read=yes, fav=no"
    assert describe("note", {"notePath": "/n/a.md"}) == "note=/n/a.md"
    assert describe("materialize", {"markdownPath": "/d/a.md"}) == "md=/d/a.md"
    assert describe("other", {}) == ""


def test_review_has_front_matter_and_table():
    doc = render_review(
        [{"time": "t1", "type": "note", "title": "A | B", "link": "https://x", "details": "note=n.md"}],
        days=3,
        generated_at="2024-08-20T09:00:00+00:00",
    )

    assert doc.startswith('---\ntitle: "Feed Archive Review (3d)"\n')
    assert "days: 3\n" in doc
    assert "| Time | Type | Title | Link | Details |" in doc
    assert "| t1 | note | A \\| B | https://x | note=n.md |" in doc


def run_log(tmp_path, action, cfg=None):
    async def scenario():
        store = ArchiveStore.open(tmp_path / "archive.db")
        await store.init()
        try:
            return await action(store, ActivityLog(store, cfg, clock=lambda: NOW))
        finally:
            await store.close()

    return asyncio.run(scenario())


def test_export_covers_only_the_requested_period(tmp_path):
    article_id = stable_id(FEED, "a")

    async def action(store, log):
        await store.ensure_feed(FEED, None)
        await store.upsert_article(
            ArticleRecord(id=article_id, feed_url=FEED, title="Pipes | Filters", link="https://example.com/a")
        )
        await store.append_activity(
            "state", article_id, {"isRead": True, "isFavorite": True}, created_at=NOW - timedelta(hours=2)
        )
        await store.append_activity(
            "materialize", None, {"title": "Loose", "url": "https://loose.example"}, created_at=NOW - timedelta(days=2)
        )
        await store.append_activity("note", article_id, {"notePath": "n.md"}, created_at=NOW - timedelta(days=9))
        return await log.export_markdown(days=3)

    doc = run_log(tmp_path, action)

    assert "| Pipes \\| Filters | https://example.com/a | read=yes, fav=yes |" in doc
    assert "| Loose | https://loose.example | md= |" in doc
    assert "note=n.md" not in doc


def test_export_days_are_clamped(tmp_path):
    async def action(store, log):
        return await log.export_markdown(days=0), await log.export_markdown(days=10_000)

    short, long = run_log(tmp_path, action)

    assert "days: 1\n" in short
    assert "days: 365\n" in long


def test_listing_clamps_limit_and_decodes_payload(tmp_path):
    async def action(store, log):
        await log.record(ActivityType.MATERIALIZE, None, {"url": "https://x"})
        await store.append_activity("state", None, None, created_at=NOW)
        return await log.list(limit=5000, offset=-3), await log.list(limit=0)

    page, tiny = run_log(tmp_path, action, cfg=ActivityConfig(page_limit_max=200))

    assert page["limit"] == 200
    assert page["offset"] == 0
    assert [item["type"] for item in page["items"]] == ["state", "materialize"]
    assert page["items"][0]["payload"] == {}
    assert page["items"][1]["payload"] == {"url": "https://x"}
    assert page["items"][1]["article"] is None
    assert page["items"][1]["createdAt"] == NOW.isoformat()
    assert tiny["limit"] == 1
    assert len(tiny["items"]) == 1


def test_service_export_includes_materialization(build_service, fixed_clock):
    def handler(request):
        return httpx.Response(200, content=b"<article><p>Body</p></article>", headers={"Content-Type": "text/html"})

    async def scenario():
        service = build_service(handler, clock=fixed_clock)
        await service.start()
        try:
            result = await service.materialize_article("https://example.com/post", title="Post")
            return result, await service.export_markdown(7)
        finally:
            await service.close()

    result, doc = asyncio.run(scenario())

    assert f"md={result.markdown_path}" in doc
    assert "| Post | https://example.com/post |" in doc
