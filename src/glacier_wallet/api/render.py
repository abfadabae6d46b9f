"""HTML rendering of API payloads."""

from __future__ import annotations

import html
import json
from typing import Any


def render_pre(payload: dict[str, Any], *, title: str = "Glacier") -> str:
    """Pretty-printed JSON inside a ``<pre>`` block."""
    body = html.escape(json.dumps(payload, indent=2))
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{html.escape(title)}</title></head>"
        f"<body><pre>{body}</pre></body></html>\n"
    )
