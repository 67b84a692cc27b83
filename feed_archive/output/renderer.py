"""
Markdown rendering for activity reviews.

The review is a Jinja2 template: a front-matter block followed by a table
of activity rows. Table cells are escaped so a `|` or a line break inside
a title or a path cannot break the table layout.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_DIR = Path(__file__).parent / "templates"


def md_cell(value: Any) -> str:
    """Escape a value for use inside a Markdown table cell.

    Examples:
        >>> md_cell("a|b\\nc")
        'a\\\\|b c'
    """
    if value is None:
        return ""
    text = str(value)
    return text.replace("|", "\\|").replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["md_cell"] = md_cell
    env.filters["json"] = lambda value: json.dumps(value, ensure_ascii=False)
    return env


def render_review(
    rows: list[dict[str, Any]],
    days: int,
    generated_at: str,
    heading: str = "Feed Archive Review",
) -> str:
    """Render activity rows as a Markdown review document.

    Args:
        rows: Dicts with time, type, title, link and details keys
        days: Length of the reviewed period
        generated_at: ISO timestamp of the export
        heading: Document heading; the title adds the period
    """
    template = _environment().get_template("review.md.j2")
    return template.render(
        title=f"{heading} ({days}d)",
        heading=heading,
        generated_at=generated_at,
        days=days,
        rows=rows,
    )
