"""Tests for HTML to Markdown conversion and front matter."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from feed_archive.materialize.frontmatter import (
    parse_front_matter,
    render_document,
    render_front_matter,
)
from feed_archive.materialize.markdown import html_to_markdown, link_destination
from feed_archive.materialize.materializer import document_path, document_slug

PAGE = """
<html>
  <head><title>Page</title><style>body { color: red; }</style></head>
  <body>
    <nav><a href="/home">Home</a></nav>
    <article>
      <h1>Deep Dive</h1>
      <p>Read the <a href="https://example.com/docs">docs</a> first.</p>
      <script>alert("x")</script>
      <noscript>Enable JS</noscript>
      <iframe src="https://ads.example.com"></iframe>
      <img src="https://cdn.example.com/chart.png" alt="Chart">
      <h2>Details</h2>
    </article>
    <footer>Copyright</footer>
  </body>
</html>
"""


def test_article_region_is_converted():
    md = html_to_markdown(PAGE)

    assert md.startswith("# Deep Dive")
    assert "## Details" in md
    assert "[docs](https://example.com/docs)" in md
    assert "![Chart](https://cdn.example.com/chart.png)" in md


def test_scripts_and_outside_content_are_dropped():
    md = html_to_markdown(PAGE)

    for fragment in ("alert", "Enable JS", "ads.example.com", "Home", "Copyright", "color: red"):
        assert fragment not in md


def test_body_is_used_without_article_region():
    md = html_to_markdown("<html><body><p>Plain <b>page</b></p><img src='/a.gif'></body></html>")

    assert "Plain **page**" in md
    assert "![](/a.gif)" in md


def test_main_region_is_preferred_over_body():
    md = html_to_markdown("<body><div>Sidebar</div><main><p>Main text</p></main></body>")

    assert md == "Main text"


def test_images_without_src_are_dropped():
    assert "![" not in html_to_markdown("<article><img alt='ghost'><p>x</p></article>")


def test_front_matter_omits_empty_values():
    header = render_front_matter(
        {"title": "A \"quoted\" title", "url": "https://example.com/a", "feed_url": None, "author": ""}
    )

    assert header == '---\ntitle: "A \\"quoted\\" title"\nurl: "https://example.com/a"\n---\n'


def test_document_front_matter_parses_back():
    doc = render_document({"title": "Tëst", "url": "https://example.com/x"}, "Body text\n")
    fields, body = parse_front_matter(doc)

    assert fields == {"title": "Tëst", "url": "https://example.com/x"}
    assert body == "Body text\n"


def test_document_without_front_matter():
    assert parse_front_matter("just text") == ({}, "just text")


def test_document_slug_falls_back_to_host_and_path():
    assert document_slug("https://example.com/posts/hello-world", None) == "example-com-hello-world"
    assert document_slug("https://example.com/x", "  Big News!  ") == "big-news"


def test_document_path_is_dated_and_unique_per_url():
    now = datetime(2024, 7, 4, tzinfo=timezone.utc)
    a = document_path(Path("/archive"), "https://example.com/a", "Same Title", now)
    b = document_path(Path("/archive"), "https://example.com/b", "Same Title", now)

    assert a.parent == Path("/archive/2024/07")
    assert a.name.startswith("same-title-")
    assert a != b


def test_awkward_image_sources_use_angle_brackets():
    md = html_to_markdown(
        '<article><img src="https://example.com/Foo_(bar).png" alt="p">'
        '<img src="https://example.com/my image.png" alt="s">'
        '<img src="https://example.com/open(.png" alt="o"></article>'
    )

    assert "![p](https://example.com/Foo_(bar).png)" in md
    assert "![s](<https://example.com/my image.png>)" in md
    assert "![o](<https://example.com/open(.png>)" in md


def test_link_destination():
    assert link_destination("/a.gif") == "/a.gif"
    assert link_destination("a b>c") == "<a b%3Ec>"
