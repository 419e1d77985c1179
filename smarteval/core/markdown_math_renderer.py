"""Markdown + LaTeX rendering of question text for the student view.

Question and option text is stored as authored and rendered on every
request; math is left in place for MathJax on the client.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render option text without the wrapping paragraph."""
        return self._markdown.renderInline(markdown_text.strip())


# MarkdownIt is safe for concurrent read-only renders, so FastAPI's worker
# threads share this instance.
renderer = MarkdownMathRenderer()
