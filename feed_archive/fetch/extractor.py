"""
Plain-text extraction from HTML with fallback strategies.

Feed items often carry HTML in their description; the normalizer turns it
into a plain-text snippet with this chain:
1. bs4: BeautifulSoup text extraction (default, works on fragments)
2. trafilatura: purpose-built main-content extraction
3. readability: Mozilla's readability algorithm
"""

from __future__ import annotations

from typing import Callable

from bs4 import BeautifulSoup
import trafilatura
from readability import Document
from readability.readability import Unparseable


def extract_text(html: str, primary: str, fallback: list[str]) -> str | None:
    """Extract plain text from HTML using a chain of extractors.

    Tries each extraction method in order until one produces non-empty
    output.

    Args:
        html: The HTML content to extract text from
        primary: Name of the primary extraction method to try first
        fallback: List of fallback method names to try if primary fails

    Returns:
        Extracted plain text with leading/trailing whitespace stripped,
        or None if all methods fail

    Examples:
        >>> extract_text("<p>Hello <b>world</b></p>", "bs4", [])
        'Hello world'
    """
    if not html or not html.strip():
        return None
    order = [primary] + [name for name in fallback if name != primary]
    for method in order:
        extractor = _get_extractor(method)
        if not extractor:
            continue
        text = extractor(html)
        if text:
            return text.strip()
    return None


def _get_extractor(name: str) -> Callable[[str], str | None] | None:
    if name == "bs4":
        return _extract_bs4
    if name == "trafilatura":
        return _extract_trafilatura
    if name == "readability":
        return _extract_readability
    return None


def _extract_trafilatura(html: str) -> str | None:
    return trafilatura.extract(html)


def _extract_readability(html: str) -> str | None:
    try:
        content_html = Document(html).summary()
    except Unparseable:
        return None
    return _extract_bs4(content_html)


def _extract_bs4(html: str) -> str | None:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    cleaned = "\n".join(" ".join(line.split()) for line in text.splitlines() if line.strip())
    return cleaned if cleaned else None
