"""
HTML to Markdown conversion for materialized articles.

Script, style, noscript and frame elements are removed first, then the
primary content region is converted with markdownify: the first <article>
element, else <main>, else the whole body. Headings are ATX, code blocks are
fenced, and images always come out as ![alt](src) so the localization pass
can find them. A src with whitespace or unbalanced parentheses is written in
the angle-bracket form ![alt](<src>).
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter
from readability import Document
from readability.readability import Unparseable

STRIPPED_TAGS = ["script", "style", "noscript", "iframe", "frame", "frameset"]

_BARE_DESTINATION_RE = re.compile(r"(?:[^()\s<>]|\([^()\s<>]*\))+")


def link_destination(url: str) -> str:
    """Markdown link destination for url, angle-bracketed when a bare one would break."""
    if _BARE_DESTINATION_RE.fullmatch(url):
        return url
    escaped = url.replace("<", "%3C").replace(">", "%3E").replace("\n", "%0A")
    return f"<{escaped}>"


class ArticleConverter(MarkdownConverter):
    """markdownify converter with a fixed image form."""

    def convert_img(self, el, text, *args, **kwargs):
        src = (el.get("src") or "").strip()
        if not src:
            return ""
        alt = (el.get("alt") or "").replace("]", "").replace("\n", " ").strip()
        return f"![{alt}]({link_destination(src)})"


def select_region(soup: BeautifulSoup) -> Tag | BeautifulSoup:
    for name in ("article", "main"):
        region = soup.find(name)
        if isinstance(region, Tag):
            return region
    return soup.body or soup


def html_to_markdown(html: str | bytes, region: str = "article") -> str:
    """Convert article HTML into Markdown.

    Args:
        html: Full article page markup (bytes are decoded by BeautifulSoup)
        region: "article" for the explicit article/main region (else body),
            "readability" for readability's main content block

    Returns:
        Markdown body without surrounding whitespace
    """
    if region == "readability":
        try:
            html = Document(html).summary(html_partial=True)
        except Unparseable:
            pass

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIPPED_TAGS):
        tag.decompose()

    converter = ArticleConverter(heading_style="ATX", code_language="", bullets="-")
    markdown = converter.convert_soup(select_region(soup))
    return _collapse_blank_lines(markdown).strip()


def _collapse_blank_lines(text: str) -> str:
    lines = [line.rstrip() for line in text.splitlines()]
    out: list[str] = []
    blank = False
    for line in lines:
        if not line:
            if blank:
                continue
            blank = True
        else:
            blank = False
        out.append(line)
    return "\n".join(out)
