"""
Article materialization.

This package converts article HTML to Markdown, writes documents with
front matter and localizes their images.
"""

from .collector import ResourceCollector, assets_dir_for, pick_extension, resolve_reference
from .frontmatter import parse_front_matter, render_document, render_front_matter
from .markdown import html_to_markdown
from .materializer import ArticleMaterializer, document_path, document_slug

__all__ = [
    "ArticleMaterializer",
    "ResourceCollector",
    "assets_dir_for",
    "document_path",
    "document_slug",
    "html_to_markdown",
    "parse_front_matter",
    "pick_extension",
    "render_document",
    "render_front_matter",
    "resolve_reference",
]
