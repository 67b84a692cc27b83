"""Tests for resource localization."""

from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import unquote

import httpx

from feed_archive.fetch.fetcher import HttpFetcher
from feed_archive.fetch.queue import FetchQueue
from feed_archive.fetch.validator import UrlValidator
from feed_archive.materialize.collector import (
    ResourceCollector,
    assets_dir_for,
    pick_extension,
    resolve_reference,
    url_digest,
)
from feed_archive.materialize.frontmatter import render_document

PNG = b"\x89PNG\r\n\x1a\nfake"

DOC_BODY = """# Gallery

![Chart One](https://cdn.example.com/chart.png)

Some text.

![Diagram](/img/diagram)

![Chart One](https://cdn.example.com/chart.png "again")

![](https://cdn.example.com/photo.jpeg?size=large)

![inline](data:image/png;base64,AAAA)
"""


async def public(host):
    return ["93.184.216.34"]


async def no_sleep(delay):
    return None


class Recorder:
    def __init__(self, failing=()):
        self.requests: list[str] = []
        self.failing = set(failing)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url in self.failing:
            return httpx.Response(404)
        if url.endswith("/img/diagram"):
            return httpx.Response(200, content=b"<svg/>", headers={"Content-Type": "image/svg+xml"})
        if "photo.jpeg" in url:
            return httpx.Response(200, content=b"jpeg", headers={"Content-Type": "application/octet-stream"})
        return httpx.Response(200, content=PNG, headers={"Content-Type": "image/png"})


def make_collector(handler) -> ResourceCollector:
    queue = FetchQueue(interval_cap=1000, base_delay=0.0, sleep=no_sleep)
    fetcher = HttpFetcher(queue, UrlValidator(resolver=public), transport=httpx.MockTransport(handler))
    return ResourceCollector(fetcher, user_agent="test-agent")


def write_doc(
    tmp_path: Path,
    url: str | None = "https://blog.example.com/posts/1",
    body: str = DOC_BODY,
) -> Path:
    path = tmp_path / "2024" / "05" / "gallery-abcd1234.md"
    path.parent.mkdir(parents=True)
    path.write_text(render_document({"title": "Gallery", "url": url}, body), encoding="utf-8")
    return path


def test_distinct_images_are_downloaded_and_rewritten(tmp_path):
    path = write_doc(tmp_path)
    recorder = Recorder()

    result = asyncio.run(make_collector(recorder).download_resources(path))

    assets = assets_dir_for(path)
    files = sorted(p.name for p in assets.iterdir())
    text = path.read_text(encoding="utf-8")
    assert result.downloaded == 3
    assert result.failed == 0
    assert result.skipped == 1
    assert len(files) == 3
    assert f"chart-one-{url_digest('https://cdn.example.com/chart.png')}.png" in files
    assert f"diagram-{url_digest('https://blog.example.com/img/diagram')}.svg" in files
    assert any(name.startswith("image-") and name.endswith(".jpeg") for name in files)
    for original in ("https://cdn.example.com/chart.png", "(/img/diagram)", "photo.jpeg"):
        assert original not in text
    assert text.count("(gallery-abcd1234-assets/chart-one-") == 2
    assert "data:image/png;base64,AAAA" in text
    assert len(recorder.requests) == 3


def test_rerun_is_a_no_op(tmp_path):
    path = write_doc(tmp_path)
    recorder = Recorder()
    collector = make_collector(recorder)

    asyncio.run(collector.download_resources(path))
    first = path.read_text(encoding="utf-8")
    second = asyncio.run(collector.download_resources(path))

    assert second.downloaded == 0
    assert second.updated is False
    assert path.read_text(encoding="utf-8") == first
    assert len(recorder.requests) == 3


def test_failed_download_leaves_reference(tmp_path):
    path = write_doc(tmp_path)
    recorder = Recorder(failing={"https://cdn.example.com/chart.png"})

    result = asyncio.run(make_collector(recorder).download_resources(path))

    text = path.read_text(encoding="utf-8")
    assert result.failed == 1
    assert result.downloaded == 2
    assert text.count("https://cdn.example.com/chart.png") == 2
    assert "(/img/diagram)" not in text
    assert recorder.requests.count("https://cdn.example.com/chart.png") == 1


def test_relative_references_skipped_without_source_url(tmp_path):
    path = write_doc(tmp_path, url=None)
    recorder = Recorder()

    result = asyncio.run(make_collector(recorder).download_resources(path))

    assert "(/img/diagram)" in path.read_text(encoding="utf-8")
    assert result.skipped == 2
    assert not any("diagram" in url for url in recorder.requests)


def test_existing_asset_is_reused(tmp_path):
    path = write_doc(tmp_path)
    assets = assets_dir_for(path)
    assets.mkdir()
    digest = url_digest("https://cdn.example.com/chart.png")
    (assets / f"chart-one-{digest}.png").write_bytes(PNG)
    recorder = Recorder()

    result = asyncio.run(make_collector(recorder).download_resources(path))

    assert result.reused == 1
    assert "https://cdn.example.com/chart.png" not in recorder.requests
    assert f"(gallery-abcd1234-assets/chart-one-{digest}.png)" in path.read_text(encoding="utf-8")


def test_missing_document_is_ignored(tmp_path):
    result = asyncio.run(make_collector(Recorder()).download_resources(tmp_path / "nope.md"))
    assert result.downloaded == 0 and result.updated is False


def test_extension_prefers_content_type():
    assert pick_extension("image/jpeg; charset=binary", "https://x/y.png") == ".jpg"
    assert pick_extension("application/octet-stream", "https://x/y.WEBP") == ".webp"
    assert pick_extension(None, "https://x/no-extension") == ""


def test_reference_resolution():
    assert resolve_reference("https://a.example/x.png", None) == "https://a.example/x.png"
    assert resolve_reference("../x.png", "https://a.example/p/q/") == "https://a.example/p/x.png"
    assert resolve_reference("x.png", None) is None
    assert resolve_reference("data:image/gif;base64,R0lG", "https://a.example/") is None


def test_parenthesized_and_bracketed_urls_are_taken_whole(tmp_path):
    body = (
        "![p](https://example.com/Foo_(bar).png)\n\n"
        "![spaced](<https://example.com/my image.png>)\n"
    )
    path = write_doc(tmp_path, body=body)
    recorder = Recorder()

    result = asyncio.run(make_collector(recorder).download_resources(path))

    text = path.read_text(encoding="utf-8")
    paren_digest = url_digest("https://example.com/Foo_(bar).png")
    spaced_digest = url_digest("https://example.com/my image.png")
    assert result.downloaded == 2
    assert sorted(unquote(url) for url in recorder.requests) == [
        "https://example.com/Foo_(bar).png",
        "https://example.com/my image.png",
    ]
    assert f"![p](gallery-abcd1234-assets/p-{paren_digest}.png)\n" in text
    assert f"![spaced](gallery-abcd1234-assets/spaced-{spaced_digest}.png)\n" in text
    assert "Foo_(bar)" not in text
    assert "my image" not in text
