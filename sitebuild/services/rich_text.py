"""HTML rendering of CMS rich-text bodies for the detail pages."""

import html
from typing import Any

from rich_text_renderer import RichTextRenderer

_renderer = RichTextRenderer()


def render_rich_text(body: Any) -> str:
    """Render *body* to HTML.

    Rich-text documents go through Contentful's renderer; a plain string body
    is split into escaped paragraphs on blank lines.
    """
    if body is None:
        return ""
    if isinstance(body, str):
        return "".join(f"<p>{html.escape(part)}</p>" for part in body.split("\n\n") if part.strip())
    return _renderer.render(body)
