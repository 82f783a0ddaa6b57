"""Markdown rendering for Inkwell.

Post bodies are converted from markdown to HTML with mistune. Raw HTML in
the source passes through untouched (bodies often embed markup produced by
template functions), and fenced code blocks with a language are
highlighted with Pygments.

Key pieces:
- MarkdownRenderer: converts a markdown string to HTML.
- extract_snippet: returns the part of rendered HTML before the break marker.
"""

from __future__ import annotations

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html

BREAK_MARKER = "<!--BREAK-->"


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer with Pygments syntax highlighting for code blocks."""

    def __init__(self) -> None:
        super().__init__(escape=False)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'javascript').

        Returns:
            HTML string with highlighted code.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML."""

    plugins = ["strikethrough", "footnotes", "table", "url"]

    def render(self, content: str) -> str:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content.

        Returns:
            Rendered HTML.
        """
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(), plugins=self.plugins
        )
        return markdown(content)


def extract_snippet(html: str, marker: str = BREAK_MARKER) -> str:
    """Return the HTML before the break marker, or "" when there is none."""
    index = html.find(marker)
    if index == -1:
        return ""
    return html[:index]
