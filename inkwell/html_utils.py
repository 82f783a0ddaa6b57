"""HTML utility functions for Inkwell.

This module provides the small HTML string helpers shared by the markdown
renderer, the template functions and the domain model.

Functions:
    escape_html: Escape special HTML characters in a string.
    strip_tags: Return the text content of an HTML fragment.
    join_root_url: Join a base URL with a path.
"""

from __future__ import annotations

from markupsafe import Markup


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Converts the following characters to their HTML entity equivalents:
    - & becomes &amp;
    - < becomes &lt;
    - > becomes &gt;
    - " becomes &quot;

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for inclusion in HTML.

    Examples:
        >>> escape_html('<script>alert("XSS")</script>')
        '&lt;script&gt;alert(&quot;XSS&quot;)&lt;/script&gt;'

        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def strip_tags(html: str) -> str:
    """Return the text content of an HTML fragment.

    Tags and comments are removed, entities are unescaped and runs of
    whitespace collapse to a single space.

    Examples:
        >>> strip_tags('<p>Hello <em>world</em></p>')
        'Hello world'
    """
    return Markup(str(html)).striptags()


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about')
        'https://example.com/about'

        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"
