"""
Front matter for Markdown documents.

A document starts with a block delimited by "---" lines holding one
`key: <json value>` pair per line. Keys whose value is None or an empty
string are omitted.
"""

from __future__ import annotations

import json
import re
from typing import Any

_BLOCK_RE = re.compile(r"\A---\n(.*?)\n---\n?", re.DOTALL)


def render_front_matter(fields: dict[str, Any]) -> str:
    lines = [
        f"{key}: {json.dumps(value, ensure_ascii=False)}"
        for key, value in fields.items()
        if value is not None and value != ""
    ]
    return "---\n" + "\n".join(lines) + "\n---\n"


def render_document(fields: dict[str, Any], body: str) -> str:
    """Front matter, a blank line, then the body with a trailing newline."""
    return f"{render_front_matter(fields)}\n{body.strip()}\n"


def parse_front_matter(document: str) -> tuple[dict[str, Any], str]:
    """Split a document into (fields, body).

    Values that are not valid JSON are kept as raw strings. A document
    without a front-matter block yields ({}, document).
    """
    match = _BLOCK_RE.match(document)
    if not match:
        return {}, document
    fields: dict[str, Any] = {}
    for line in match.group(1).splitlines():
        key, sep, raw = line.partition(":")
        if not sep:
            continue
        raw = raw.strip()
        try:
            fields[key.strip()] = json.loads(raw)
        except ValueError:
            fields[key.strip()] = raw
    return fields, document[match.end():].lstrip("\n")
